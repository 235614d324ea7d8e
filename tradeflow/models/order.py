"""Order model."""
from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow
import enum


class OrderStatus(str, enum.Enum):
    """Order status enum. Only creation and cancellation happen in this service."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    APPROVED = 'approved'
    PICKED = 'picked'
    LOADED = 'loaded'
    READY_FOR_DELIVERY = 'ready_for_delivery'
    DELIVERING = 'delivering'
    DELIVERED = 'delivered'
    PARTIAL = 'partial'
    CANCELLED = 'cancelled'
    RETURNED = 'returned'


class PaymentStatus(str, enum.Enum):
    """Payment status for customer debt tracking."""
    UNPAID = 'unpaid'
    PARTIAL = 'partial'
    PAID = 'paid'


class Order(Base):
    """Customer order (created from the portal cart or a reorder)."""

    __tablename__ = 'customer_order'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False, index=True)
    customer_id = Column(BigInt, ForeignKey('customer.id'), nullable=False, index=True)
    order_number = Column(String(32), nullable=False)
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    subtotal_amount = Column(Numeric(14, 2), nullable=False, default=0)
    discount_id = Column(BigInt, ForeignKey('discount.id'), nullable=True)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    delivery_address = Column(Text, nullable=False)
    source_order_id = Column(BigInt, ForeignKey('customer_order.id'), nullable=True)  # set on reorder
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant')
    customer = relationship('Customer', back_populates='orders')
    discount = relationship('Discount')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')
    history = relationship('OrderStatusHistory', back_populates='order', cascade='all, delete-orphan',
                           order_by='OrderStatusHistory.id')

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}', total={self.total_amount})>"

    @property
    def is_cancellable(self):
        return self.status == OrderStatus.PENDING.value

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'order_number': self.order_number,
            'customer_id': self.customer_id,
            'status': self.status,
            'payment_status': self.payment_status,
            'subtotal_amount': self.subtotal_amount,
            'discount_amount': self.discount_amount,
            'discount_id': self.discount_id,
            'total_amount': self.total_amount,
            'notes': self.notes,
            'delivery_address': self.delivery_address,
            'item_count': len(self.items),
            'created_at': self.created_at,
            'cancelled_at': self.cancelled_at,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

"""Purchase Order model."""
from sqlalchemy import Column, String, Numeric, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow
import enum


class POStatus(str, enum.Enum):
    """Purchase order status.

    Lines can only be edited in DRAFT. ORDERED, PARTIAL_RECEIVED and RECEIVED
    are derived from receiving progress once the order is submitted.
    """
    DRAFT = 'draft'
    ORDERED = 'ordered'
    PARTIAL_RECEIVED = 'partial_received'
    RECEIVED = 'received'
    CANCELLED = 'cancelled'


class PurchaseOrder(Base):
    """Purchase order sent to a supplier and received by the warehouse."""

    __tablename__ = 'purchase_order'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'po_number', name='uq_po_tenant_number'),
    )

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False, index=True)
    po_number = Column(String(32), nullable=False)
    supplier_name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=POStatus.DRAFT.value)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    ordered_at = Column(DateTime, nullable=True)
    received_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship('PurchaseOrderItem', back_populates='purchase_order',
                         cascade='all, delete-orphan', order_by='PurchaseOrderItem.id')

    def __repr__(self):
        return f"<PurchaseOrder(id={self.id}, po_number='{self.po_number}', status='{self.status}')>"

    @property
    def is_editable(self):
        return self.status == POStatus.DRAFT.value

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'po_number': self.po_number,
            'supplier_name': self.supplier_name,
            'status': self.status,
            'total_amount': self.total_amount,
            'notes': self.notes,
            'item_count': len(self.items),
            'total_ordered': sum(item.qty_ordered for item in self.items),
            'total_received': sum(item.qty_received for item in self.items),
            'created_at': self.created_at,
            'ordered_at': self.ordered_at,
            'received_at': self.received_at,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

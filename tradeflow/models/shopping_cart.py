"""Shopping Cart model (persistent customer-portal cart)."""
from sqlalchemy import Column, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow


class ShoppingCart(Base):
    """
    One cart per customer.

    ``applied_discount_id`` holds a manually entered discount code. It is
    cleared whenever the items change so a stale discount never survives a
    cart mutation.
    """

    __tablename__ = 'shopping_cart'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False)
    customer_id = Column(BigInt, ForeignKey('customer.id'), nullable=False, unique=True)
    applied_discount_id = Column(BigInt, ForeignKey('discount.id'), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    items = relationship('CartItem', back_populates='cart', cascade='all, delete-orphan',
                         order_by='CartItem.id')
    applied_discount = relationship('Discount')

    def __repr__(self):
        return f"<ShoppingCart(id={self.id}, customer_id={self.customer_id})>"

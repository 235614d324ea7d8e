"""Discount model."""
from sqlalchemy import Column, String, Boolean, Numeric, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow
import enum


class DiscountType(str, enum.Enum):
    """How ``Discount.value`` is interpreted."""
    PERCENTAGE = 'percentage'      # 0-100 percent of the subtotal
    FIXED_AMOUNT = 'fixed_amount'  # absolute currency amount
    FREE_QTY = 'free_qty'          # number of free units of the cheapest lines


class Discount(Base):
    """
    Discount configured by a tenant admin.

    Discounts without a ``code`` are automatic: checkout and the cart preview
    pick the best qualifying one. Discounts with a ``code`` only apply when the
    customer enters that code.
    """

    __tablename__ = 'discount'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'code', name='uq_discount_tenant_code'),
    )

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    code = Column(String(50), nullable=True)
    type = Column(String(20), nullable=False)
    value = Column(Numeric(14, 2), nullable=False, default=0)
    min_order_amount = Column(Numeric(14, 2), nullable=True)
    min_qty = Column(Integer, nullable=True)
    max_discount_amount = Column(Numeric(14, 2), nullable=True)
    starts_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant')

    def __repr__(self):
        return f"<Discount(id={self.id}, name='{self.name}', type='{self.type}', value={self.value})>"

    @property
    def is_automatic(self):
        return not self.code

    def is_expired(self, now):
        return self.expires_at is not None and now > self.expires_at

    def has_started(self, now):
        return self.starts_at is None or self.starts_at <= now

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'type': self.type,
            'value': self.value,
            'min_order_amount': self.min_order_amount,
            'min_qty': self.min_qty,
            'max_discount_amount': self.max_discount_amount,
            'starts_at': self.starts_at,
            'expires_at': self.expires_at,
            'active': self.active,
            'is_automatic': self.is_automatic,
        }

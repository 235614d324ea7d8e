"""Product model."""
from sqlalchemy import Column, String, Boolean, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow


class Product(Base):
    """Catalog product. ``price`` is the only price checkout trusts."""

    __tablename__ = 'product'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'sku', name='uq_product_tenant_sku'),
    )

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False, index=True)
    sku = Column(String(64), nullable=True)
    barcode = Column(String(64), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    price = Column(Numeric(14, 2), nullable=False)
    cost = Column(Numeric(14, 2), nullable=False, default=0)  # Purchase price
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant')
    stock = relationship('ProductStock', uselist=False, back_populates='product', cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}')>"

    @property
    def on_hand_qty(self):
        """Get on hand quantity from stock."""
        if self.stock:
            return self.stock.on_hand_qty
        return 0

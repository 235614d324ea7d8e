"""Purchase Order Item model."""
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt


class PurchaseOrderItem(Base):
    """PO line. ``qty_received`` may exceed ``qty_ordered`` (over-receipt)."""

    __tablename__ = 'purchase_order_item'
    __table_args__ = (
        UniqueConstraint('purchase_order_id', 'product_id', name='uq_po_item_product'),
        CheckConstraint('qty_ordered >= 1', name='ck_po_item_qty_ordered'),
        CheckConstraint('qty_received >= 0', name='ck_po_item_qty_received'),
    )

    id = Column(BigInt, primary_key=True, autoincrement=True)
    purchase_order_id = Column(BigInt, ForeignKey('purchase_order.id'), nullable=False, index=True)
    product_id = Column(BigInt, ForeignKey('product.id'), nullable=False)
    qty_ordered = Column(Integer, nullable=False)
    qty_received = Column(Integer, nullable=False, default=0)
    unit_cost = Column(Numeric(14, 2), nullable=False, default=0)
    line_total = Column(Numeric(14, 2), nullable=False, default=0)
    last_scanned_at = Column(DateTime, nullable=True)
    scanned_by_user_id = Column(BigInt, nullable=True)

    # Relationships
    purchase_order = relationship('PurchaseOrder', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<PurchaseOrderItem(id={self.id}, product_id={self.product_id}, {self.qty_received}/{self.qty_ordered})>"

    @property
    def remaining(self):
        return max(self.qty_ordered - self.qty_received, 0)

    @property
    def is_complete(self):
        return self.qty_received >= self.qty_ordered

    @property
    def is_over_received(self):
        return self.qty_received > self.qty_ordered

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'barcode': self.product.barcode if self.product else None,
            'sku': self.product.sku if self.product else None,
            'qty_ordered': self.qty_ordered,
            'qty_received': self.qty_received,
            'remaining': self.remaining,
            'is_complete': self.is_complete,
            'is_over_received': self.is_over_received,
            'unit_cost': self.unit_cost,
            'line_total': self.line_total,
            'last_scanned_at': self.last_scanned_at,
        }

"""Order Item model."""
from sqlalchemy import Column, Integer, Numeric, String, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt


class OrderItem(Base):
    """Order line: snapshot of the catalog price at checkout time."""

    __tablename__ = 'order_item'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    order_id = Column(BigInt, ForeignKey('customer_order.id'), nullable=False)
    product_id = Column(BigInt, ForeignKey('product.id'), nullable=False)
    product_name = Column(String(255), nullable=False)
    qty_ordered = Column(Integer, nullable=False)
    qty_delivered = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(14, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.qty_ordered})>"

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.qty_ordered,
            'unit_price': self.unit_price,
            'line_total': self.line_total,
        }

"""Stock Move Line model."""
from sqlalchemy import Column, Integer, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt


class StockMoveLine(Base):
    """Stock Move Line (quantity moved per product)."""

    __tablename__ = 'stock_move_line'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    stock_move_id = Column(BigInt, ForeignKey('stock_move.id'), nullable=False)
    product_id = Column(BigInt, ForeignKey('product.id'), nullable=False)
    qty = Column(Integer, nullable=False)

    # Relationships
    stock_move = relationship('StockMove', back_populates='lines')
    product = relationship('Product')

    def __repr__(self):
        return f"<StockMoveLine(id={self.id}, product_id={self.product_id}, qty={self.qty})>"

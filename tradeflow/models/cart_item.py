"""Cart Item model."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow


class CartItem(Base):
    """Cart line. Prices are not stored: they are read from the catalog."""

    __tablename__ = 'cart_item'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    cart_id = Column(BigInt, ForeignKey('shopping_cart.id'), nullable=False)
    product_id = Column(BigInt, ForeignKey('product.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    cart = relationship('ShoppingCart', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<CartItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"

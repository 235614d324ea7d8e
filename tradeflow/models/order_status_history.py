"""Order Status History model."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow


class OrderStatusHistory(Base):
    """Audit trail of order status changes."""

    __tablename__ = 'order_status_history'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    order_id = Column(BigInt, ForeignKey('customer_order.id'), nullable=False, index=True)
    from_status = Column(String(30), nullable=True)
    to_status = Column(String(30), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    order = relationship('Order', back_populates='history')

    def __repr__(self):
        return f"<OrderStatusHistory(order_id={self.order_id}, {self.from_status} -> {self.to_status})>"

"""Stock Move model."""
from sqlalchemy import Column, DateTime, Text, String, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow
import enum


class StockMoveType(str, enum.Enum):
    """Stock move type enum."""
    IN = "IN"
    OUT = "OUT"


class StockReferenceType(str, enum.Enum):
    """Stock move reference type enum."""
    ORDER = "ORDER"
    ORDER_CANCEL = "ORDER_CANCEL"
    RECEIVING = "RECEIVING"


class StockMove(Base):
    """Stock Move (inventory movement header)."""

    __tablename__ = 'stock_move'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=utcnow)
    type = Column(String(10), nullable=False)
    reference_type = Column(String(20), nullable=False)
    reference_id = Column(BigInt, nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    tenant = relationship('Tenant')
    lines = relationship('StockMoveLine', back_populates='stock_move', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<StockMove(id={self.id}, type={self.type}, reference_type={self.reference_type})>"

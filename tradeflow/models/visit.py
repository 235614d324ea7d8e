"""Visit model (field-sales visit to a customer)."""
from sqlalchemy import Column, String, Text, Date, DateTime, Numeric, JSON, ForeignKey
from sqlalchemy.orm import relationship
from tradeflow.database import Base, BigInt
from tradeflow.utils.dates import utcnow
import enum


class VisitStatus(str, enum.Enum):
    """Visit status. COMPLETED and CANCELLED are terminal."""
    PLANNED = 'planned'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class VisitType(str, enum.Enum):
    SCHEDULED = 'scheduled'
    AD_HOC = 'ad_hoc'


class VisitOutcome(str, enum.Enum):
    ORDER_PLACED = 'order_placed'
    NO_ORDER = 'no_order'
    FOLLOW_UP = 'follow_up'
    NOT_AVAILABLE = 'not_available'


class VisitMode(str, enum.Enum):
    """Creation mode: a planned visit, or a quick log of one that just happened."""
    SCHEDULED = 'scheduled'
    QUICK = 'quick'


class Visit(Base):
    """
    Sales visit.

    ``started_at`` is set for in_progress and completed visits only,
    ``completed_at`` and ``outcome`` for completed visits only.
    """

    __tablename__ = 'visit'

    id = Column(BigInt, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInt, ForeignKey('tenant.id'), nullable=False, index=True)
    customer_id = Column(BigInt, ForeignKey('customer.id'), nullable=False, index=True)
    sales_rep_id = Column(BigInt, nullable=False, index=True)  # user id from the identity service
    status = Column(String(20), nullable=False, default=VisitStatus.PLANNED.value)
    visit_type = Column(String(20), nullable=False, default=VisitType.SCHEDULED.value)
    planned_date = Column(Date, nullable=False)
    planned_time = Column(String(5), nullable=True)  # HH:MM
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    outcome = Column(String(20), nullable=True)
    outcome_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    photos = Column(JSON, nullable=True)
    start_latitude = Column(Numeric(10, 7), nullable=True)
    start_longitude = Column(Numeric(10, 7), nullable=True)
    end_latitude = Column(Numeric(10, 7), nullable=True)
    end_longitude = Column(Numeric(10, 7), nullable=True)
    follow_up_date = Column(Date, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    customer = relationship('Customer')

    def __repr__(self):
        return f"<Visit(id={self.id}, customer_id={self.customer_id}, status='{self.status}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'sales_rep_id': self.sales_rep_id,
            'status': self.status,
            'visit_type': self.visit_type,
            'planned_date': self.planned_date,
            'planned_time': self.planned_time,
            'started_at': self.started_at,
            'completed_at': self.completed_at,
            'outcome': self.outcome,
            'outcome_notes': self.outcome_notes,
            'notes': self.notes,
            'photos': self.photos or [],
            'start_latitude': self.start_latitude,
            'start_longitude': self.start_longitude,
            'end_latitude': self.end_latitude,
            'end_longitude': self.end_longitude,
            'follow_up_date': self.follow_up_date,
        }

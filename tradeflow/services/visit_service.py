"""
Visit service - field-sales visit lifecycle (multi-tenant).

    planned -> in_progress -> completed
    planned -> cancelled
    in_progress -> cancelled

completed and cancelled are terminal. Every transition is a conditional
UPDATE on the expected current status, so a duplicate submission loses
with INVALID_STATUS_TRANSITION instead of overwriting the first one.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from tradeflow.exceptions import (
    ErrorCode, ForbiddenError, InvalidStatusTransitionError, NotFoundError, ValidationError
)
from tradeflow.models import Customer, Visit, VisitMode, VisitOutcome, VisitStatus, VisitType
from tradeflow.utils.dates import parse_date, parse_time, utcnow
from tradeflow.utils.text import sanitize_text

logger = logging.getLogger(__name__)

SALES_REP_ROLE = 'sales_rep'
MAX_PHOTOS = 10


def _enum_value(enum_cls, raw, code: ErrorCode, label: str) -> Optional[str]:
    if raw is None or raw == '':
        return None
    try:
        return enum_cls(raw).value
    except ValueError:
        raise ValidationError(f"Invalid {label} '{raw}'", code=code)


def _require(payload: Dict[str, Any], field: str):
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f'{field} is required', code=ErrorCode.MISSING_REQUIRED_FIELD,
                              payload={'field': field})
    return value


def _date_field(payload: Dict[str, Any], field: str, today: Optional[date] = None) -> Optional[date]:
    """Parse an optional date; with ``today`` it must not lie in the past."""
    try:
        value = parse_date(payload.get(field))
    except (TypeError, ValueError):
        raise ValidationError(f'{field} is not a valid date', code=ErrorCode.INVALID_DATE,
                              payload={'field': field})
    if value is not None and today is not None and value < today:
        raise ValidationError(f'{field} cannot be in the past', code=ErrorCode.INVALID_DATE,
                              payload={'field': field})
    return value


def _time_field(payload: Dict[str, Any], field: str) -> Optional[str]:
    try:
        return parse_time(payload.get(field))
    except (TypeError, ValueError):
        raise ValidationError(f'{field} is not a valid time', code=ErrorCode.INVALID_DATE,
                              payload={'field': field})


def _coordinate(value, limit: int, label: str) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{label} must be a number')
    if not number.is_finite() or abs(number) > limit:
        raise ValidationError(f'{label} is out of range')
    return number.quantize(Decimal('0.0000001'))


def _photos(value) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
        raise ValidationError('photos must be a list of URLs')
    if len(value) > MAX_PHOTOS:
        raise ValidationError(f'At most {MAX_PHOTOS} photos are allowed')
    return [url.strip() for url in value if url.strip()]


def _check_owner(visit: Visit, user_id: Optional[int], role: Optional[str]) -> None:
    if role == SALES_REP_ROLE and visit.sales_rep_id != user_id:
        raise ForbiddenError('This visit belongs to another sales rep')


def get_visit(session: Session, tenant_id: int, visit_id: int, user_id: Optional[int] = None,
              role: Optional[str] = None) -> Visit:
    visit = session.query(Visit).filter(Visit.id == visit_id, Visit.tenant_id == tenant_id).first()
    if not visit:
        raise NotFoundError('Visit not found')
    _check_owner(visit, user_id, role)
    return visit


def _scoped_query(session: Session, tenant_id: int, user_id: Optional[int], role: Optional[str]):
    query = session.query(Visit).filter(Visit.tenant_id == tenant_id)
    if role == SALES_REP_ROLE:
        query = query.filter(Visit.sales_rep_id == user_id)
    return query


def list_visits(session: Session, tenant_id: int, user_id: Optional[int], role: Optional[str],
                status: Optional[str] = None, customer_id: Optional[int] = None,
                date_from: Optional[date] = None, date_to: Optional[date] = None,
                page: int = 1, limit: int = 20) -> Tuple[List[Visit], int]:
    """Newest planned date first. Sales reps only see their own visits."""
    query = _scoped_query(session, tenant_id, user_id, role)
    if status:
        query = query.filter(Visit.status == _enum_value(VisitStatus, status, ErrorCode.VALIDATION_ERROR, 'status'))
    if customer_id:
        query = query.filter(Visit.customer_id == customer_id)
    if date_from:
        query = query.filter(Visit.planned_date >= date_from)
    if date_to:
        query = query.filter(Visit.planned_date <= date_to)

    total = query.count()
    visits = query.order_by(Visit.planned_date.desc(), Visit.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return visits, total


def get_today_visits(session: Session, tenant_id: int, user_id: Optional[int], role: Optional[str],
                     day: Optional[date] = None) -> Dict[str, Any]:
    """Visits planned for ``day`` (default: today, UTC) with per-status counts."""
    day = day or utcnow().date()
    visits = _scoped_query(session, tenant_id, user_id, role).filter(
        Visit.planned_date == day
    ).order_by(Visit.planned_time.asc(), Visit.id.asc()).all()

    stats = {'total': len(visits)}
    for status in VisitStatus:
        stats[status.value] = sum(1 for v in visits if v.status == status.value)
    return {'date': day, 'visits': visits, 'stats': stats}


def get_visit_stats(session: Session, tenant_id: int, user_id: Optional[int], role: Optional[str],
                    day: Optional[date] = None) -> Dict[str, Any]:
    """
    Dashboard counters: today (total, completed, in_progress) and this week
    (total, completed, orders_placed). The week starts on Sunday and has no
    upper bound, so visits planned later in the week count too.
    """
    day = day or utcnow().date()
    week_start = day - timedelta(days=(day.weekday() + 1) % 7)

    def _count(column, value):
        return func.coalesce(func.sum(case((column == value, 1), else_=0)), 0)

    today_row = _scoped_query(session, tenant_id, user_id, role).filter(
        Visit.planned_date == day
    ).with_entities(
        func.count(Visit.id),
        _count(Visit.status, VisitStatus.COMPLETED.value),
        _count(Visit.status, VisitStatus.IN_PROGRESS.value),
    ).one()
    week_row = _scoped_query(session, tenant_id, user_id, role).filter(
        Visit.planned_date >= week_start
    ).with_entities(
        func.count(Visit.id),
        _count(Visit.status, VisitStatus.COMPLETED.value),
        _count(Visit.outcome, VisitOutcome.ORDER_PLACED.value),
    ).one()

    return {
        'today': {'total': today_row[0], 'completed': int(today_row[1]), 'in_progress': int(today_row[2])},
        'this_week': {
            'week_start': week_start,
            'total': week_row[0],
            'completed': int(week_row[1]),
            'orders_placed': int(week_row[2]),
        },
    }


def create_visit(session: Session, tenant_id: int, user_id: int, role: Optional[str], payload: Dict[str, Any],
                 today: Optional[date] = None) -> Visit:
    """
    Create a scheduled (planned) visit or log a quick one (completed, ad_hoc).

    Errors come in a fixed order: enum checks (INVALID_MODE,
    INVALID_VISIT_TYPE, INVALID_OUTCOME), then MISSING_REQUIRED_FIELD, then
    INVALID_DATE, then the customer lookup.
    """
    today = today or utcnow().date()

    mode = _enum_value(VisitMode, payload.get('mode') or VisitMode.SCHEDULED.value, ErrorCode.INVALID_MODE, 'mode')
    visit_type = _enum_value(VisitType, payload.get('visit_type'), ErrorCode.INVALID_VISIT_TYPE, 'visit type')
    outcome = _enum_value(VisitOutcome, payload.get('outcome'), ErrorCode.INVALID_OUTCOME, 'outcome')

    customer_id = _require(payload, 'customer_id')
    if mode == VisitMode.SCHEDULED.value:
        _require(payload, 'planned_date')
    else:
        _require(payload, 'outcome')

    if mode == VisitMode.SCHEDULED.value:
        planned_date = _date_field(payload, 'planned_date', today=today)
    else:
        planned_date = today
    planned_time = _time_field(payload, 'planned_time')
    follow_up_date = _date_field(payload, 'follow_up_date', today=today)

    try:
        customer_id = int(customer_id)
    except (TypeError, ValueError):
        raise ValidationError('customer_id must be an integer')
    customer = session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.tenant_id == tenant_id
    ).first()
    if not customer:
        raise NotFoundError('Customer not found')

    sales_rep_id = user_id
    if role != SALES_REP_ROLE and payload.get('sales_rep_id'):
        try:
            sales_rep_id = int(payload['sales_rep_id'])
        except (TypeError, ValueError):
            raise ValidationError('sales_rep_id must be an integer', payload={'field': 'sales_rep_id'})

    visit = Visit(
        tenant_id=tenant_id,
        customer_id=customer.id,
        sales_rep_id=sales_rep_id,
        planned_date=planned_date,
        planned_time=planned_time,
        notes=sanitize_text(payload.get('notes'), max_length=2000),
        follow_up_date=follow_up_date,
    )

    if mode == VisitMode.SCHEDULED.value:
        visit.status = VisitStatus.PLANNED.value
        visit.visit_type = visit_type or VisitType.SCHEDULED.value
    else:
        now = utcnow()
        visit.status = VisitStatus.COMPLETED.value
        visit.visit_type = VisitType.AD_HOC.value
        visit.started_at = now
        visit.completed_at = now
        visit.outcome = outcome
        visit.outcome_notes = sanitize_text(payload.get('outcome_notes'), max_length=2000)
        visit.photos = _photos(payload.get('photos'))
        visit.end_latitude = _coordinate(payload.get('latitude'), 90, 'latitude')
        visit.end_longitude = _coordinate(payload.get('longitude'), 180, 'longitude')

    try:
        session.add(visit)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Visit {visit.id} created ({mode}) for customer {customer.id} by user {user_id}")
    return visit


def _transition(session: Session, visit: Visit, allowed_from, values: Dict[str, Any], action: str) -> Visit:
    """Apply ``values`` only if the stored status is still one of ``allowed_from``."""
    values = dict(values, updated_at=utcnow())
    try:
        updated = session.query(Visit).filter(
            Visit.id == visit.id,
            Visit.status.in_(allowed_from)
        ).update(values, synchronize_session=False)
        if not updated:
            current = session.query(Visit.status).filter(Visit.id == visit.id).scalar()
            raise InvalidStatusTransitionError(f'Cannot {action} a visit that is {current}')
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(visit)
    logger.info(f"Visit {visit.id} -> {visit.status}")
    return visit


def start_visit(session: Session, tenant_id: int, visit_id: int, user_id: Optional[int], role: Optional[str],
                latitude=None, longitude=None) -> Visit:
    """planned -> in_progress."""
    visit = get_visit(session, tenant_id, visit_id, user_id, role)
    values = {
        'status': VisitStatus.IN_PROGRESS.value,
        'started_at': utcnow(),
        'start_latitude': _coordinate(latitude, 90, 'latitude'),
        'start_longitude': _coordinate(longitude, 180, 'longitude'),
    }
    return _transition(session, visit, [VisitStatus.PLANNED.value], values, 'start')


def complete_visit(session: Session, tenant_id: int, visit_id: int, user_id: Optional[int], role: Optional[str],
                   outcome: Optional[str], outcome_notes: Optional[str] = None, photos=None,
                   latitude=None, longitude=None, follow_up_date=None) -> Visit:
    """in_progress -> completed. The outcome is validated before the status."""
    outcome_value = _enum_value(VisitOutcome, outcome, ErrorCode.INVALID_OUTCOME, 'outcome')
    if outcome_value is None:
        raise ValidationError('outcome is required', code=ErrorCode.MISSING_REQUIRED_FIELD,
                              payload={'field': 'outcome'})
    follow_up = _date_field({'follow_up_date': follow_up_date}, 'follow_up_date')

    visit = get_visit(session, tenant_id, visit_id, user_id, role)
    values = {
        'status': VisitStatus.COMPLETED.value,
        'completed_at': utcnow(),
        'outcome': outcome_value,
        'outcome_notes': sanitize_text(outcome_notes, max_length=2000),
        'photos': _photos(photos),
        'end_latitude': _coordinate(latitude, 90, 'latitude'),
        'end_longitude': _coordinate(longitude, 180, 'longitude'),
    }
    if follow_up is not None:
        values['follow_up_date'] = follow_up
    return _transition(session, visit, [VisitStatus.IN_PROGRESS.value], values, 'complete')


def cancel_visit(session: Session, tenant_id: int, visit_id: int, user_id: Optional[int], role: Optional[str],
                 reason: Optional[str] = None) -> Visit:
    """planned | in_progress -> cancelled. started_at is cleared."""
    visit = get_visit(session, tenant_id, visit_id, user_id, role)
    values = {
        'status': VisitStatus.CANCELLED.value,
        'started_at': None,
        'cancel_reason': sanitize_text(reason, max_length=500),
    }
    return _transition(session, visit, [VisitStatus.PLANNED.value, VisitStatus.IN_PROGRESS.value],
                       values, 'cancel')


def reschedule_visit(session: Session, tenant_id: int, visit_id: int, user_id: Optional[int], role: Optional[str],
                     payload: Dict[str, Any], today: Optional[date] = None) -> Visit:
    """Change date, time, type or notes of a planned visit."""
    today = today or utcnow().date()
    visit_type = _enum_value(VisitType, payload.get('visit_type'), ErrorCode.INVALID_VISIT_TYPE, 'visit type')

    values: Dict[str, Any] = {}
    if visit_type:
        values['visit_type'] = visit_type
    if payload.get('planned_date'):
        values['planned_date'] = _date_field(payload, 'planned_date', today=today)
    if 'planned_time' in payload:
        values['planned_time'] = _time_field(payload, 'planned_time')
    if 'notes' in payload:
        values['notes'] = sanitize_text(payload.get('notes'), max_length=2000)

    visit = get_visit(session, tenant_id, visit_id, user_id, role)
    return _transition(session, visit, [VisitStatus.PLANNED.value], values, 'reschedule')

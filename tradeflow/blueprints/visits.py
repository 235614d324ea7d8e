"""Sales visits API (field-sales app)."""
from flask import Blueprint, g, request

from tradeflow.blueprints.metrics import visit_transitions_total
from tradeflow.database import get_session
from tradeflow.exceptions import ErrorCode, ValidationError
from tradeflow.middleware import require_role
from tradeflow.services import visit_service
from tradeflow.utils.dates import parse_date
from tradeflow.utils.responses import json_body, page_args, pagination_meta, success

visits_bp = Blueprint('visits', __name__, url_prefix='/visits')

SALES_ROLES = ('sales_rep', 'supervisor', 'tenant_admin')


def _date_arg(name):
    try:
        return parse_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f'{name} is not a valid date', code=ErrorCode.INVALID_DATE)


@visits_bp.route('', methods=['GET'])
@require_role(*SALES_ROLES)
def list_visits():
    session = get_session()
    page, limit = page_args()
    visits, total = visit_service.list_visits(
        session, g.tenant_id, g.user_id, g.role,
        status=request.args.get('status') or None,
        customer_id=request.args.get('customerId', type=int),
        date_from=_date_arg('dateFrom'),
        date_to=_date_arg('dateTo'),
        page=page, limit=limit
    )
    return success([v.to_dict() for v in visits], meta=pagination_meta(page, limit, total))


@visits_bp.route('/today', methods=['GET'])
@require_role(*SALES_ROLES)
def today_visits():
    session = get_session()
    result = visit_service.get_today_visits(session, g.tenant_id, g.user_id, g.role, day=_date_arg('date'))
    result['visits'] = [v.to_dict() for v in result['visits']]
    return success(result)


@visits_bp.route('/stats', methods=['GET'])
@require_role(*SALES_ROLES)
def visit_stats():
    session = get_session()
    return success(visit_service.get_visit_stats(session, g.tenant_id, g.user_id, g.role, day=_date_arg('date')))


@visits_bp.route('/<int:visit_id>', methods=['GET'])
@require_role(*SALES_ROLES)
def get_visit(visit_id):
    session = get_session()
    visit = visit_service.get_visit(session, g.tenant_id, visit_id, g.user_id, g.role)
    return success(visit.to_dict())


@visits_bp.route('', methods=['POST'])
@require_role(*SALES_ROLES)
def create_visit():
    session = get_session()
    visit = visit_service.create_visit(session, g.tenant_id, g.user_id, g.role, json_body())
    visit_transitions_total.labels(to_status=visit.status).inc()
    return success(visit.to_dict(), status=201)


@visits_bp.route('/<int:visit_id>', methods=['PATCH'])
@require_role(*SALES_ROLES)
def reschedule_visit(visit_id):
    session = get_session()
    visit = visit_service.reschedule_visit(session, g.tenant_id, visit_id, g.user_id, g.role, json_body())
    return success(visit.to_dict())


@visits_bp.route('/<int:visit_id>/start', methods=['PATCH'])
@require_role(*SALES_ROLES)
def start_visit(visit_id):
    session = get_session()
    body = json_body()
    visit = visit_service.start_visit(
        session, g.tenant_id, visit_id, g.user_id, g.role,
        latitude=body.get('latitude'), longitude=body.get('longitude')
    )
    visit_transitions_total.labels(to_status=visit.status).inc()
    return success(visit.to_dict())


@visits_bp.route('/<int:visit_id>/complete', methods=['PATCH'])
@require_role(*SALES_ROLES)
def complete_visit(visit_id):
    session = get_session()
    body = json_body()
    visit = visit_service.complete_visit(
        session, g.tenant_id, visit_id, g.user_id, g.role,
        outcome=body.get('outcome'),
        outcome_notes=body.get('outcome_notes'),
        photos=body.get('photos'),
        latitude=body.get('latitude'),
        longitude=body.get('longitude'),
        follow_up_date=body.get('follow_up_date'),
    )
    visit_transitions_total.labels(to_status=visit.status).inc()
    return success(visit.to_dict())


@visits_bp.route('/<int:visit_id>/cancel', methods=['PATCH'])
@require_role(*SALES_ROLES)
def cancel_visit(visit_id):
    session = get_session()
    body = json_body()
    visit = visit_service.cancel_visit(session, g.tenant_id, visit_id, g.user_id, g.role,
                                       reason=body.get('reason'))
    visit_transitions_total.labels(to_status=visit.status).inc()
    return success(visit.to_dict())

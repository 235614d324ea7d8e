"""Discount administration API (tenant admins)."""
from flask import Blueprint, g

from tradeflow.database import get_session
from tradeflow.middleware import require_role
from tradeflow.services import discount_service
from tradeflow.utils.responses import json_body, success

discounts_bp = Blueprint('discounts', __name__, url_prefix='/discounts')


@discounts_bp.route('', methods=['GET'])
@require_role('tenant_admin', 'supervisor')
def list_discounts():
    session = get_session()
    discounts = discount_service.list_discounts(session, g.tenant_id)
    return success([d.to_dict() for d in discounts])


@discounts_bp.route('', methods=['POST'])
@require_role('tenant_admin')
def create_discount():
    session = get_session()
    discount = discount_service.create_discount(session, g.tenant_id, json_body())
    return success(discount.to_dict(), status=201)


@discounts_bp.route('/<int:discount_id>', methods=['PATCH'])
@require_role('tenant_admin')
def update_discount(discount_id):
    session = get_session()
    discount = discount_service.update_discount(session, g.tenant_id, discount_id, json_body())
    return success(discount.to_dict())

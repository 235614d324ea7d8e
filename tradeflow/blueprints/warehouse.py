"""Warehouse API: receiving against purchase orders."""
from flask import Blueprint, g, request

from tradeflow.blueprints.metrics import receiving_scans_total
from tradeflow.database import get_session
from tradeflow.exceptions import ValidationError
from tradeflow.middleware import require_role
from tradeflow.services import receiving_service
from tradeflow.utils.responses import json_body, page_args, pagination_meta, success

warehouse_bp = Blueprint('warehouse', __name__, url_prefix='/warehouse')

WAREHOUSE_ROLES = ('warehouse', 'supervisor', 'tenant_admin')


@warehouse_bp.route('/receiving', methods=['GET'])
@require_role(*WAREHOUSE_ROLES)
def list_receiving():
    session = get_session()
    page, limit = page_args()
    orders, total = receiving_service.list_receiving(
        session, g.tenant_id, status=request.args.get('status') or None, page=page, limit=limit
    )
    return success([po.to_dict() for po in orders], meta=pagination_meta(page, limit, total))


@warehouse_bp.route('/receiving', methods=['POST'])
@require_role(*WAREHOUSE_ROLES)
def create_receiving():
    session = get_session()
    body = json_body()
    items = body.get('items') or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ValidationError('items must be a list of objects')
    po = receiving_service.create_purchase_order(
        session, g.tenant_id, body.get('supplier_name'), items=items, notes=body.get('notes')
    )
    return success(po.to_dict(include_items=True), status=201)


@warehouse_bp.route('/receiving/<int:po_id>', methods=['GET'])
@require_role(*WAREHOUSE_ROLES)
def receiving_detail(po_id):
    session = get_session()
    return success(receiving_service.get_receiving_detail(session, g.tenant_id, po_id))


@warehouse_bp.route('/receiving/<int:po_id>/submit', methods=['POST'])
@require_role('supervisor', 'tenant_admin')
def submit_receiving(po_id):
    session = get_session()
    po = receiving_service.submit_purchase_order(session, g.tenant_id, po_id)
    return success(po.to_dict(include_items=True))


@warehouse_bp.route('/receiving/<int:po_id>/scan', methods=['POST'])
@require_role(*WAREHOUSE_ROLES)
def scan_item(po_id):
    session = get_session()
    body = json_body()
    result = receiving_service.scan(
        session, g.tenant_id, po_id, body.get('barcode'),
        quantity=body.get('quantity', 1), user_id=g.user_id
    )
    receiving_scans_total.labels(over_received=str(result['is_over_received']).lower()).inc()
    return success(result)


@warehouse_bp.route('/receiving/<int:po_id>/items', methods=['POST'])
@require_role(*WAREHOUSE_ROLES)
def add_item(po_id):
    session = get_session()
    body = json_body()
    po = receiving_service.add_po_item(
        session, g.tenant_id, po_id, body.get('product_id'), body.get('qty_ordered'),
        unit_cost=body.get('unit_cost')
    )
    return success(po.to_dict(include_items=True), status=201)


@warehouse_bp.route('/receiving/<int:po_id>/items/<int:item_id>', methods=['PATCH'])
@require_role(*WAREHOUSE_ROLES)
def update_item(po_id, item_id):
    session = get_session()
    body = json_body()
    po = receiving_service.update_po_item_quantity(
        session, g.tenant_id, po_id, item_id, body.get('qty_ordered'), unit_cost=body.get('unit_cost')
    )
    return success(po.to_dict(include_items=True))


@warehouse_bp.route('/receiving/<int:po_id>/items/<int:item_id>', methods=['DELETE'])
@require_role(*WAREHOUSE_ROLES)
def remove_item(po_id, item_id):
    session = get_session()
    po = receiving_service.remove_po_item(session, g.tenant_id, po_id, item_id)
    return success(po.to_dict(include_items=True))

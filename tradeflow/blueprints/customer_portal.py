"""Customer portal API: cart, discounts, orders and reorder."""
from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, g, request

from tradeflow.blueprints.metrics import orders_cancelled_total, orders_created_total
from tradeflow.database import get_session
from tradeflow.exceptions import ValidationError
from tradeflow.middleware import require_customer
from tradeflow.services import cart_service, discount_service, order_service
from tradeflow.utils.responses import json_body, page_args, pagination_meta, success

customer_portal_bp = Blueprint('customer_portal', __name__, url_prefix='/customer-portal')


def _cart_from_body(session, body):
    """
    Priced lines for the discount endpoints.

    With ``items`` the subtotal is recomputed from the catalog; a bare
    ``cart_total`` is only accepted when no lines are sent.
    """
    items = body.get('items')
    if items:
        normalized = cart_service.normalize_items(items, current_app.config['MAX_LINE_QTY'])
        priced = cart_service.price_items(session, g.tenant_id, normalized, check_stock=False)
        return priced['subtotal'], priced['lines'], priced['item_count']

    try:
        subtotal = Decimal(str(body.get('cart_total', 0)))
    except (InvalidOperation, ValueError):
        raise ValidationError('cart_total must be a number')
    if not subtotal.is_finite() or subtotal < 0:
        raise ValidationError('cart_total must not be negative')
    item_count = body.get('item_count') or 0
    if not isinstance(item_count, int) or item_count < 0:
        raise ValidationError('item_count must be a non-negative integer')
    return subtotal, None, item_count


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------

@customer_portal_bp.route('/cart', methods=['GET'])
@require_customer
def get_cart():
    session = get_session()
    return success(cart_service.get_cart_summary(session, g.tenant_id, g.customer_id))


@customer_portal_bp.route('/cart', methods=['PUT'])
@require_customer
def replace_cart():
    session = get_session()
    body = json_body()
    items = body.get('items')
    if items is None or not isinstance(items, list):
        raise ValidationError('items must be a list')
    summary = cart_service.replace_cart_items(
        session, g.tenant_id, g.customer_id, items, max_qty=current_app.config['MAX_LINE_QTY']
    )
    return success(summary)


@customer_portal_bp.route('/cart/discount', methods=['POST'])
@require_customer
def apply_cart_discount():
    session = get_session()
    body = json_body()
    summary = cart_service.apply_cart_discount_code(session, g.tenant_id, g.customer_id, body.get('code'))
    return success(summary)


@customer_portal_bp.route('/cart/discount', methods=['DELETE'])
@require_customer
def remove_cart_discount():
    session = get_session()
    return success(cart_service.remove_cart_discount_code(session, g.tenant_id, g.customer_id))


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------

@customer_portal_bp.route('/discounts/validate', methods=['POST'])
@require_customer
def validate_discount():
    """Validate a manual code against the posted cart."""
    session = get_session()
    body = json_body()
    subtotal, lines, item_count = _cart_from_body(session, body)
    application = discount_service.validate_manual_code(
        session, g.tenant_id, body.get('code'), subtotal, items=lines, item_count=item_count
    )
    return success(application)


@customer_portal_bp.route('/discounts/preview', methods=['POST'])
@require_customer
def preview_discount():
    """Best automatic discount for the posted cart; data is null when none applies."""
    session = get_session()
    body = json_body()
    subtotal, lines, item_count = _cart_from_body(session, body)
    application = discount_service.preview_auto_discount(
        session, g.tenant_id, subtotal, item_count, items=lines
    )
    return success(application)


@customer_portal_bp.route('/discounts/available', methods=['GET'])
@require_customer
def available_discounts():
    session = get_session()
    discounts = discount_service.get_available_discounts_cached(
        session, g.tenant_id, ttl=current_app.config.get('CACHE_DISCOUNTS_TTL')
    )
    return success(discounts)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@customer_portal_bp.route('/orders', methods=['GET'])
@require_customer
def list_orders():
    session = get_session()
    page, limit = page_args()
    orders, total = order_service.list_orders(
        session, g.tenant_id, customer_id=g.customer_id,
        status=request.args.get('status') or None, page=page, limit=limit
    )
    return success([o.to_dict() for o in orders], meta=pagination_meta(page, limit, total))


@customer_portal_bp.route('/orders/<int:order_id>', methods=['GET'])
@require_customer
def get_order(order_id):
    session = get_session()
    order = order_service.get_order(session, g.tenant_id, order_id, customer_id=g.customer_id)
    data = order.to_dict(include_items=True)
    data['history'] = [
        {'from_status': h.from_status, 'to_status': h.to_status, 'notes': h.notes, 'created_at': h.created_at}
        for h in order.history
    ]
    return success(data)


@customer_portal_bp.route('/orders', methods=['POST'])
@require_customer
def create_order():
    """Checkout. Prices come from the catalog; client prices are ignored."""
    session = get_session()
    body = json_body()
    discount_id = body.get('discount_id')
    if discount_id is not None:
        try:
            discount_id = int(discount_id)
        except (TypeError, ValueError):
            raise ValidationError('discount_id must be an integer')

    summary = order_service.checkout(
        session, g.tenant_id, g.customer_id,
        items=body.get('items'),
        delivery_address=body.get('delivery_address'),
        notes=body.get('notes'),
        discount_id=discount_id,
        max_pending_orders=current_app.config['MAX_PENDING_ORDERS'],
        max_qty=current_app.config['MAX_LINE_QTY'],
        default_timezone=current_app.config['DEFAULT_TENANT_TIMEZONE'],
    )
    orders_created_total.labels(source='checkout').inc()
    return success(summary, status=201)


@customer_portal_bp.route('/orders/<int:order_id>/cancel', methods=['POST'])
@require_customer
def cancel_order(order_id):
    session = get_session()
    body = json_body()
    order = order_service.cancel_order(
        session, g.tenant_id, order_id, customer_id=g.customer_id, reason=body.get('reason')
    )
    orders_cancelled_total.inc()
    return success(order.to_dict())


@customer_portal_bp.route('/reorder/<int:order_id>', methods=['POST'])
@require_customer
def reorder(order_id):
    session = get_session()
    summary = order_service.reorder(
        session, g.tenant_id, order_id, g.customer_id,
        max_pending_orders=current_app.config['MAX_PENDING_ORDERS'],
        default_timezone=current_app.config['DEFAULT_TENANT_TIMEZONE'],
    )
    orders_created_total.labels(source='reorder').inc()
    return success(summary, status=201)

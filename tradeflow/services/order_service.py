"""
Order service with transactional logic - Multi-Tenant.
Handles portal checkout, cancellation and reorder: pricing from the
catalog, discount resolution, stock deduction and customer debt.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from tradeflow.exceptions import (
    BusinessLogicError, ErrorCode, InsufficientStockError, NotFoundError, ValidationError
)
from tradeflow.models import (
    Customer, Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentStatus, Tenant,
    StockMoveType, StockReferenceType
)
from tradeflow.services import cart_service, discount_service, stock_service
from tradeflow.utils.dates import get_zone, local_day_start_utc, utcnow
from tradeflow.utils.text import sanitize_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING_ORDERS = 5
DEFAULT_TIMEZONE = 'Asia/Tashkent'
# Statuses counted against the open-orders limit
OPEN_STATUSES = (OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value)


def generate_order_number(session: Session, tenant: Tenant, default_timezone: str = DEFAULT_TIMEZONE,
                          now: Optional[datetime] = None) -> str:
    """
    ``{prefix}{NN}{HHMM}``: NN is today's order count + 1 and HHMM the local
    time, both in the tenant timezone.
    """
    tz_name = tenant.timezone or default_timezone
    now = now or datetime.now(timezone.utc)
    local = now.astimezone(get_zone(tz_name))
    day_start = local_day_start_utc(tz_name, now)

    count = session.query(func.count(Order.id)).filter(
        Order.tenant_id == tenant.id,
        Order.created_at >= day_start
    ).scalar() or 0

    return f"{tenant.order_number_prefix or ''}{count + 1:02d}{local:%H%M}"


def _get_tenant(session: Session, tenant_id: int) -> Tenant:
    tenant = session.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise NotFoundError('Tenant not found')
    return tenant


def _get_customer(session: Session, tenant_id: int, customer_id: int) -> Customer:
    customer = session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.tenant_id == tenant_id
    ).first()
    if not customer or not customer.active:
        raise NotFoundError('Customer not found')
    return customer


def _check_open_orders(session: Session, tenant_id: int, customer_id: int, max_pending_orders: int) -> None:
    open_count = session.query(func.count(Order.id)).filter(
        Order.tenant_id == tenant_id,
        Order.customer_id == customer_id,
        Order.status.in_(OPEN_STATUSES)
    ).scalar() or 0

    if open_count >= max_pending_orders:
        raise BusinessLogicError(
            ErrorCode.ORDER_LIMIT_REACHED,
            f'You already have {open_count} open orders; wait until they are processed',
            payload={'limit': max_pending_orders}
        )


def _place_order(session: Session, tenant: Tenant, customer: Customer, priced: Dict[str, Any],
                 application: Optional[Dict[str, Any]], delivery_address: str, notes: Optional[str],
                 default_timezone: str, source_order_id: Optional[int] = None,
                 clear_cart: bool = True) -> Order:
    """Write order, lines, stock movement, history and debt. Caller commits."""
    subtotal = priced['subtotal']
    discount_amount = application['discount_amount'] if application else Decimal('0.00')
    total = max(subtotal - discount_amount, Decimal('0.00'))

    order = Order(
        tenant_id=tenant.id,
        customer_id=customer.id,
        order_number=generate_order_number(session, tenant, default_timezone),
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.UNPAID.value,
        subtotal_amount=subtotal,
        discount_id=application['discount_id'] if application else None,
        discount_amount=discount_amount,
        total_amount=total,
        notes=notes,
        delivery_address=delivery_address,
        source_order_id=source_order_id,
    )
    session.add(order)
    session.flush()

    for line in priced['lines']:
        if not stock_service.decrement_stock(session, line['product_id'], line['quantity']):
            if line['product'].stock is not None:
                session.refresh(line['product'].stock)
            raise InsufficientStockError(line['product_name'], line['quantity'], line['product'].on_hand_qty,
                                         payload={'product_id': line['product_id']})
        order.items.append(OrderItem(
            product_id=line['product_id'],
            product_name=line['product_name'],
            qty_ordered=line['quantity'],
            unit_price=line['unit_price'],
            line_total=line['line_total'],
        ))

    stock_service.record_stock_move(
        session, tenant.id, StockMoveType.OUT, StockReferenceType.ORDER, order.id,
        [{'product_id': line['product_id'], 'qty': line['quantity']} for line in priced['lines']],
        notes=f'Order {order.order_number}'
    )
    session.add(OrderStatusHistory(order_id=order.id, from_status=None, to_status=OrderStatus.PENDING.value))

    customer.debt_balance = (customer.debt_balance or Decimal('0')) + total
    if clear_cart:
        cart_service.clear_cart(session, tenant.id, customer.id, commit=False)

    session.flush()
    return order


def _order_summary(order: Order, application: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        'order_id': order.id,
        'order_number': order.order_number,
        'status': order.status,
        'subtotal_amount': order.subtotal_amount,
        'discount_amount': order.discount_amount,
        'total_amount': order.total_amount,
        'item_count': len(order.items),
        'discount': application,
    }


def checkout(session: Session, tenant_id: int, customer_id: int, items: List[Dict[str, Any]],
             delivery_address: Optional[str], notes: Optional[str] = None, discount_id: Optional[int] = None,
             max_pending_orders: int = DEFAULT_MAX_PENDING_ORDERS,
             max_qty: int = cart_service.DEFAULT_MAX_LINE_QTY,
             default_timezone: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    """
    Turn cart lines into a pending order.

    Checks, in order: EMPTY_CART, quantities (VALIDATION_ERROR), delivery
    address (VALIDATION_ERROR), customer (NOT_FOUND), open-orders limit
    (ORDER_LIMIT_REACHED), products (PRODUCT_NOT_FOUND), stock
    (INSUFFICIENT_STOCK). Everything is committed in one transaction; the
    stock decrement itself is conditional so a concurrent checkout that
    consumed the stock first makes this one fail as a whole.
    """
    if not items:
        raise BusinessLogicError(ErrorCode.EMPTY_CART, 'Cart is empty')

    normalized = cart_service.normalize_items(items, max_qty)
    address = sanitize_text(delivery_address)
    if not address:
        raise ValidationError('Delivery address is required', payload={'field': 'delivery_address'})
    notes = sanitize_text(notes, max_length=1000)

    try:
        tenant = _get_tenant(session, tenant_id)
        customer = _get_customer(session, tenant_id, customer_id)
        _check_open_orders(session, tenant_id, customer_id, max_pending_orders)

        priced = cart_service.price_items(session, tenant_id, normalized)

        if discount_id is not None:
            application = discount_service.apply_discount_by_id(
                session, tenant_id, discount_id, priced['subtotal'], items=priced['lines']
            )
        else:
            application = discount_service.preview_auto_discount(
                session, tenant_id, priced['subtotal'], priced['item_count'], items=priced['lines']
            )

        order = _place_order(session, tenant, customer, priced, application, address, notes, default_timezone)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order {order.order_number} (id={order.id}) created for customer {customer_id}, "
                f"tenant {tenant_id}, total {order.total_amount}")
    return _order_summary(order, application)


def get_order(session: Session, tenant_id: int, order_id: int, customer_id: Optional[int] = None) -> Order:
    query = session.query(Order).filter(Order.id == order_id, Order.tenant_id == tenant_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    order = query.first()
    if not order:
        raise NotFoundError('Order not found')
    return order


def list_orders(session: Session, tenant_id: int, customer_id: Optional[int] = None, status: Optional[str] = None,
                page: int = 1, limit: int = 20) -> Tuple[List[Order], int]:
    """Newest first. Returns (orders, total)."""
    query = session.query(Order).filter(Order.tenant_id == tenant_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if status:
        query = query.filter(Order.status == status)

    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return orders, total


def cancel_order(session: Session, tenant_id: int, order_id: int, customer_id: Optional[int] = None,
                 reason: Optional[str] = None) -> Order:
    """Cancel a pending order, returning its units to stock and reversing the debt."""
    order = get_order(session, tenant_id, order_id, customer_id)
    if not order.is_cancellable:
        raise BusinessLogicError(ErrorCode.ORDER_NOT_CANCELLABLE,
                                 f'Order {order.order_number} is {order.status} and cannot be cancelled')

    reason = sanitize_text(reason, max_length=500)
    now = utcnow()
    try:
        updated = session.query(Order).filter(
            Order.id == order.id,
            Order.status == OrderStatus.PENDING.value
        ).update({
            Order.status: OrderStatus.CANCELLED.value,
            Order.cancelled_at: now,
            Order.cancel_reason: reason,
            Order.updated_at: now,
        }, synchronize_session='evaluate')
        if not updated:
            raise BusinessLogicError(ErrorCode.ORDER_NOT_CANCELLABLE,
                                     f'Order {order.order_number} cannot be cancelled')

        for item in order.items:
            stock_service.increment_stock(session, item.product_id, item.qty_ordered)
        stock_service.record_stock_move(
            session, tenant_id, StockMoveType.IN, StockReferenceType.ORDER_CANCEL, order.id,
            [{'product_id': item.product_id, 'qty': item.qty_ordered} for item in order.items],
            notes=f'Cancel order {order.order_number}'
        )
        session.add(OrderStatusHistory(
            order_id=order.id,
            from_status=OrderStatus.PENDING.value,
            to_status=OrderStatus.CANCELLED.value,
            notes=reason
        ))

        customer = order.customer
        customer.debt_balance = max((customer.debt_balance or Decimal('0')) - order.total_amount, Decimal('0'))
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order {order.order_number} (id={order.id}) cancelled, tenant {tenant_id}")
    return order


def reorder(session: Session, tenant_id: int, order_id: int, customer_id: int,
            max_pending_orders: int = DEFAULT_MAX_PENDING_ORDERS,
            default_timezone: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    """
    Place a new order with the lines of a previous one.

    Lines are re-priced from the catalog. Lines whose product is gone or whose
    stock is below the original quantity are skipped and reported; if nothing
    is left the call fails with INSUFFICIENT_STOCK.
    """
    source = get_order(session, tenant_id, order_id, customer_id)

    try:
        tenant = _get_tenant(session, tenant_id)
        customer = _get_customer(session, tenant_id, customer_id)
        _check_open_orders(session, tenant_id, customer_id, max_pending_orders)

        products = cart_service.load_products(session, tenant_id, [item.product_id for item in source.items])
        kept, skipped = [], []
        for item in source.items:
            product = products.get(item.product_id)
            if product is None:
                skipped.append({
                    'product_id': item.product_id,
                    'product_name': item.product_name,
                    'requested': item.qty_ordered,
                    'code': ErrorCode.PRODUCT_NOT_FOUND.value,
                })
            elif product.on_hand_qty < item.qty_ordered:
                skipped.append({
                    'product_id': item.product_id,
                    'product_name': product.name,
                    'requested': item.qty_ordered,
                    'available': product.on_hand_qty,
                    'code': ErrorCode.INSUFFICIENT_STOCK.value,
                })
            else:
                kept.append({'product_id': item.product_id, 'quantity': item.qty_ordered})

        if not kept:
            raise BusinessLogicError(ErrorCode.INSUFFICIENT_STOCK, 'None of the products are available',
                                     status_code=409, payload={'skipped': skipped})

        priced = cart_service.price_items(session, tenant_id, kept)
        application = discount_service.preview_auto_discount(
            session, tenant_id, priced['subtotal'], priced['item_count'], items=priced['lines']
        )
        order = _place_order(
            session, tenant, customer, priced, application, source.delivery_address,
            f'Reorder of {source.order_number}', default_timezone,
            source_order_id=source.id, clear_cart=False
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order {order.order_number} created as reorder of {source.order_number}, "
                f"{len(skipped)} lines skipped")
    summary = _order_summary(order, application)
    summary['skipped'] = skipped
    return summary

"""Customer portal cart - persistent per-customer cart (multi-tenant).

Prices are never stored on the cart: every read resolves them from the
catalog. A manually entered discount code lives on the cart and is dropped
whenever the items change.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from tradeflow.exceptions import (
    BusinessLogicError, ErpError, ErrorCode, InsufficientStockError, NotFoundError, ValidationError
)
from tradeflow.models import CartItem, Customer, Product, ShoppingCart
from tradeflow.services import discount_service
from tradeflow.utils.dates import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_QTY = 1000


def _parse_quantity(raw, max_qty: int) -> int:
    # bool is an int subclass, and 2.5 must not silently become 2
    if isinstance(raw, bool) or raw is None:
        raise ValidationError('Quantity must be a whole number')
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValidationError('Quantity must be a whole number')
        raw = int(raw)
    try:
        qty = int(str(raw).strip())
    except ValueError:
        raise ValidationError('Quantity must be a whole number')
    if qty < 1:
        raise ValidationError('Quantity must be at least 1')
    if qty > max_qty:
        raise ValidationError(f'Quantity must not exceed {max_qty}')
    return qty


def normalize_items(items: Optional[List[Dict[str, Any]]], max_qty: int = DEFAULT_MAX_LINE_QTY) -> List[Dict[str, int]]:
    """
    Validate raw client lines into ``[{product_id, quantity}]``.

    Client prices are ignored. Repeated products are merged. An empty list
    is returned as is so callers can decide whether that is an error.
    """
    merged: Dict[int, int] = {}
    for item in items or []:
        if not isinstance(item, dict):
            raise ValidationError('Each item must be an object')
        raw_id = item.get('product_id')
        try:
            product_id = int(raw_id)
        except (TypeError, ValueError):
            raise ValidationError('Each item needs a valid product_id')
        qty = _parse_quantity(item.get('quantity'), max_qty)
        merged[product_id] = merged.get(product_id, 0) + qty
        if merged[product_id] > max_qty:
            raise ValidationError(f'Quantity must not exceed {max_qty}')
    return [{'product_id': pid, 'quantity': qty} for pid, qty in merged.items()]


def load_products(session: Session, tenant_id: int, product_ids: List[int]) -> Dict[int, Product]:
    """Active catalog products of the tenant, keyed by id."""
    if not product_ids:
        return {}
    products = session.query(Product).filter(
        Product.id.in_(product_ids),
        Product.tenant_id == tenant_id,
        Product.active.is_(True)
    ).all()
    return {p.id: p for p in products}


def price_items(session: Session, tenant_id: int, items: List[Dict[str, int]],
                check_stock: bool = True) -> Dict[str, Any]:
    """
    Resolve normalized lines against the live catalog.

    Raises PRODUCT_NOT_FOUND for unknown/inactive products and, when
    ``check_stock`` is set, INSUFFICIENT_STOCK for lines above live stock.
    """
    products = load_products(session, tenant_id, [i['product_id'] for i in items])
    lines = []
    subtotal = Decimal('0')
    for item in items:
        product = products.get(item['product_id'])
        if product is None:
            raise NotFoundError(f"Product {item['product_id']} not found", code=ErrorCode.PRODUCT_NOT_FOUND,
                                payload={'product_id': item['product_id']})
        if check_stock and item['quantity'] > product.on_hand_qty:
            raise InsufficientStockError(product.name, item['quantity'], product.on_hand_qty,
                                         payload={'product_id': product.id})
        line_total = discount_service.money(product.price * item['quantity'])
        lines.append({
            'product_id': product.id,
            'product': product,
            'product_name': product.name,
            'unit_price': product.price,
            'quantity': item['quantity'],
            'line_total': line_total,
        })
        subtotal += line_total
    return {
        'lines': lines,
        'subtotal': discount_service.money(subtotal),
        'item_count': sum(line['quantity'] for line in lines),
    }


def _get_customer(session: Session, tenant_id: int, customer_id: int) -> Customer:
    customer = session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.tenant_id == tenant_id
    ).first()
    if not customer:
        raise NotFoundError('Customer not found')
    return customer


def get_or_create_cart(session: Session, tenant_id: int, customer_id: int) -> ShoppingCart:
    """One cart per customer; created lazily."""
    cart = session.query(ShoppingCart).filter(
        ShoppingCart.tenant_id == tenant_id,
        ShoppingCart.customer_id == customer_id
    ).first()
    if cart:
        return cart

    _get_customer(session, tenant_id, customer_id)
    cart = ShoppingCart(tenant_id=tenant_id, customer_id=customer_id)
    session.add(cart)
    session.flush()
    return cart


def _summarize(session: Session, tenant_id: int, cart: ShoppingCart, now=None) -> Dict[str, Any]:
    products = load_products(session, tenant_id, [item.product_id for item in cart.items])

    items, priced = [], []
    subtotal = Decimal('0')
    for item in cart.items:
        product = products.get(item.product_id)
        if product is None:
            items.append({
                'product_id': item.product_id,
                'quantity': item.quantity,
                'available': False,
            })
            continue
        line_total = discount_service.money(product.price * item.quantity)
        subtotal += line_total
        priced.append({'unit_price': product.price, 'quantity': item.quantity})
        items.append({
            'product_id': product.id,
            'product_name': product.name,
            'unit_price': product.price,
            'quantity': item.quantity,
            'line_total': line_total,
            'stock': product.on_hand_qty,
            'available': True,
            'in_stock': item.quantity <= product.on_hand_qty,
        })

    subtotal = discount_service.money(subtotal)
    item_count = discount_service.count_units(priced)
    discount, source, dropped_code = None, None, None

    if cart.applied_discount_id is not None:
        try:
            discount = discount_service.apply_discount_by_id(
                session, tenant_id, cart.applied_discount_id, subtotal, items=priced, now=now
            )
            source = 'manual'
        except ErpError as e:
            dropped_code = cart.applied_discount.code if cart.applied_discount else None
            logger.info(f"Dropping discount {cart.applied_discount_id} from cart {cart.id}: {e.code.value}")
            cart.applied_discount_id = None
            session.flush()

    if discount is None and priced:
        discount = discount_service.preview_auto_discount(
            session, tenant_id, subtotal, item_count, items=priced, now=now
        )
        source = 'auto' if discount else None

    discount_amount = discount['discount_amount'] if discount else Decimal('0.00')
    return {
        'items': items,
        'subtotal': subtotal,
        'item_count': item_count,
        'discount': discount,
        'discount_source': source,
        'applied_code': cart.applied_discount.code if cart.applied_discount_id and cart.applied_discount else None,
        'dropped_code': dropped_code,
        'discount_amount': discount_amount,
        'total': max(subtotal - discount_amount, Decimal('0.00')),
    }


def get_cart_summary(session: Session, tenant_id: int, customer_id: int, now=None) -> Dict[str, Any]:
    """Cart lines priced from the catalog with the manual or best automatic discount."""
    try:
        cart = get_or_create_cart(session, tenant_id, customer_id)
        summary = _summarize(session, tenant_id, cart, now=now)
        session.commit()
        return summary
    except Exception:
        session.rollback()
        raise


def replace_cart_items(session: Session, tenant_id: int, customer_id: int, items: List[Dict[str, Any]],
                       max_qty: int = DEFAULT_MAX_LINE_QTY) -> Dict[str, Any]:
    """
    Replace the cart content.

    Any change to the lines drops an applied discount code; the summary then
    reports ``discount_invalidated``.
    """
    normalized = normalize_items(items, max_qty)
    try:
        cart = get_or_create_cart(session, tenant_id, customer_id)
        if normalized:
            price_items(session, tenant_id, normalized)

        current = sorted((i.product_id, i.quantity) for i in cart.items)
        wanted = sorted((i['product_id'], i['quantity']) for i in normalized)
        invalidated = False

        if current != wanted:
            cart.items[:] = [CartItem(product_id=i['product_id'], quantity=i['quantity']) for i in normalized]
            if cart.applied_discount_id is not None:
                cart.applied_discount_id = None
                invalidated = True
            cart.updated_at = utcnow()
            session.flush()

        summary = _summarize(session, tenant_id, cart)
        summary['discount_invalidated'] = invalidated
        session.commit()
        return summary
    except Exception:
        session.rollback()
        raise


def apply_cart_discount_code(session: Session, tenant_id: int, customer_id: int, code: str,
                             now=None) -> Dict[str, Any]:
    """Validate a code against the current cart and keep it on the cart."""
    try:
        cart = get_or_create_cart(session, tenant_id, customer_id)
        if not cart.items:
            raise BusinessLogicError(ErrorCode.EMPTY_CART, 'Cart is empty')

        products = load_products(session, tenant_id, [i.product_id for i in cart.items])
        normalized = [{'product_id': i.product_id, 'quantity': i.quantity}
                      for i in cart.items if i.product_id in products]
        priced = price_items(session, tenant_id, normalized, check_stock=False)
        application = discount_service.validate_manual_code(
            session, tenant_id, code, priced['subtotal'], items=priced['lines'], now=now
        )

        cart.applied_discount_id = application['discount_id']
        session.flush()
        session.expire(cart, ['applied_discount'])
        summary = _summarize(session, tenant_id, cart, now=now)
        session.commit()
        return summary
    except Exception:
        session.rollback()
        raise


def remove_cart_discount_code(session: Session, tenant_id: int, customer_id: int) -> Dict[str, Any]:
    """Forget the manual code; the summary falls back to the automatic preview."""
    try:
        cart = get_or_create_cart(session, tenant_id, customer_id)
        cart.applied_discount_id = None
        session.flush()
        summary = _summarize(session, tenant_id, cart)
        session.commit()
        return summary
    except Exception:
        session.rollback()
        raise


def clear_cart(session: Session, tenant_id: int, customer_id: int, commit: bool = True) -> None:
    """Empty the cart. Checkout calls this inside its own transaction."""
    cart = session.query(ShoppingCart).filter(
        ShoppingCart.tenant_id == tenant_id,
        ShoppingCart.customer_id == customer_id
    ).first()
    if not cart:
        return
    cart.items[:] = []
    cart.applied_discount_id = None
    cart.updated_at = utcnow()
    session.flush()
    if commit:
        session.commit()

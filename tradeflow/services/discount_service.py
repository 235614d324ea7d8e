"""
Discount service - Multi-Tenant.
Resolves automatic discounts, validates manual codes and manages the
tenant's discount catalog.

A discount application is a plain dict::

    {discount_id, discount_name, discount_type, discount_value,
     discount_amount, original_total, new_total}

It is computed per request and never stored on its own.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tradeflow.exceptions import BusinessLogicError, ErrorCode, NotFoundError, ValidationError
from tradeflow.models import Discount, DiscountType
from tradeflow.utils.dates import parse_datetime, utcnow
from tradeflow.utils.text import sanitize_text

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
CACHE_MODULE = 'discounts'


def money(value) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def count_units(items: Optional[Iterable[Dict[str, Any]]]) -> int:
    return sum(int(item['quantity']) for item in (items or []))


def _free_units_amount(free_units: int, subtotal: Decimal, item_count: int,
                       items: Optional[List[Dict[str, Any]]]) -> Decimal:
    """Value of ``free_units`` units, taken from the cheapest lines first."""
    if free_units <= 0:
        return ZERO

    if not items:
        # Only totals known: assume every unit costs the average price
        if item_count <= 0:
            return ZERO
        average = subtotal / Decimal(item_count)
        return average * min(free_units, item_count)

    amount = Decimal('0')
    remaining = free_units
    for item in sorted(items, key=lambda i: Decimal(str(i['unit_price']))):
        if remaining <= 0:
            break
        units = min(int(item['quantity']), remaining)
        amount += Decimal(str(item['unit_price'])) * units
        remaining -= units
    return amount


def calculate_discount_amount(discount: Discount, subtotal: Decimal, item_count: int,
                              items: Optional[List[Dict[str, Any]]] = None) -> Decimal:
    """
    Amount a discount is worth for a cart. Pure function, no eligibility checks.

    Always rounded to cents and never larger than the subtotal.
    """
    subtotal = Decimal(str(subtotal))
    if subtotal <= 0:
        return ZERO

    value = Decimal(str(discount.value or 0))
    if discount.type == DiscountType.PERCENTAGE.value:
        amount = subtotal * value / Decimal('100')
        if discount.max_discount_amount is not None:
            amount = min(amount, Decimal(str(discount.max_discount_amount)))
    elif discount.type == DiscountType.FIXED_AMOUNT.value:
        amount = value
    elif discount.type == DiscountType.FREE_QTY.value:
        amount = _free_units_amount(int(value), subtotal, item_count, items)
    else:
        logger.warning(f"Unknown discount type '{discount.type}' on discount {discount.id}")
        amount = ZERO

    amount = max(min(amount, subtotal), ZERO)
    return money(amount)


def build_application(discount: Discount, subtotal: Decimal, amount: Decimal) -> Dict[str, Any]:
    subtotal = money(subtotal)
    return {
        'discount_id': discount.id,
        'discount_name': discount.name,
        'discount_type': discount.type,
        'discount_value': discount.value,
        'discount_amount': amount,
        'original_total': subtotal,
        'new_total': max(subtotal - amount, ZERO),
    }


def _check_eligibility(discount: Discount, subtotal: Decimal, item_count: int, now) -> None:
    """Raise the first failing rule for a discount the customer asked for."""
    if not discount.active or not discount.has_started(now):
        raise BusinessLogicError(ErrorCode.DISCOUNT_INACTIVE, f'Discount "{discount.name}" is not active')
    if discount.is_expired(now):
        raise BusinessLogicError(ErrorCode.DISCOUNT_EXPIRED, f'Discount "{discount.name}" has expired')
    if discount.min_order_amount is not None and Decimal(str(subtotal)) < discount.min_order_amount:
        raise BusinessLogicError(
            ErrorCode.MIN_ORDER_AMOUNT,
            f'Minimum order amount for this discount is {discount.min_order_amount}',
            payload={'min_order_amount': discount.min_order_amount}
        )
    if discount.min_qty is not None and item_count < discount.min_qty:
        raise BusinessLogicError(
            ErrorCode.MIN_QTY,
            f'This discount needs at least {discount.min_qty} items',
            payload={'min_qty': discount.min_qty}
        )


def _current_filter(query, now):
    return query.filter(
        Discount.active.is_(True),
        or_(Discount.starts_at.is_(None), Discount.starts_at <= now),
        or_(Discount.expires_at.is_(None), Discount.expires_at >= now),
    )


def preview_auto_discount(session: Session, tenant_id: int, cart_subtotal: Decimal, item_count: int,
                          items: Optional[List[Dict[str, Any]]] = None, now=None) -> Optional[Dict[str, Any]]:
    """
    Best automatic discount for a cart, or None.

    Read-only. Among qualifying discounts the largest amount wins; on a tie the
    lowest discount id wins. A best amount of 0 means nothing applies.
    """
    now = now or utcnow()
    subtotal = Decimal(str(cart_subtotal))

    candidates = _current_filter(
        session.query(Discount).filter(Discount.tenant_id == tenant_id, Discount.code.is_(None)),
        now
    ).order_by(Discount.id.asc()).all()

    best, best_amount = None, ZERO
    for discount in candidates:
        if discount.min_order_amount is not None and subtotal < discount.min_order_amount:
            continue
        if discount.min_qty is not None and item_count < discount.min_qty:
            continue
        amount = calculate_discount_amount(discount, subtotal, item_count, items)
        if amount > best_amount:
            best, best_amount = discount, amount

    if best is None:
        return None
    return build_application(best, subtotal, best_amount)


def find_discount_by_code(session: Session, tenant_id: int, code: str) -> Optional[Discount]:
    return session.query(Discount).filter(
        Discount.tenant_id == tenant_id,
        Discount.code.isnot(None),
        func.lower(Discount.code) == code.strip().lower()
    ).first()


def validate_manual_code(session: Session, tenant_id: int, code: str, cart_subtotal: Decimal,
                         items: Optional[List[Dict[str, Any]]] = None, item_count: Optional[int] = None,
                         now=None) -> Dict[str, Any]:
    """
    Validate a customer-entered discount code against a cart.

    Checks run in this order: DISCOUNT_NOT_FOUND, DISCOUNT_INACTIVE,
    DISCOUNT_EXPIRED, MIN_ORDER_AMOUNT, MIN_QTY.
    """
    code = sanitize_text(code)
    if not code:
        raise ValidationError('Discount code is required')

    discount = find_discount_by_code(session, tenant_id, code)
    if not discount:
        raise NotFoundError(f'Discount code "{code}" not found', code=ErrorCode.DISCOUNT_NOT_FOUND)

    return _apply(discount, cart_subtotal, items, item_count, now)


def apply_discount_by_id(session: Session, tenant_id: int, discount_id: int, cart_subtotal: Decimal,
                         items: Optional[List[Dict[str, Any]]] = None, item_count: Optional[int] = None,
                         now=None) -> Dict[str, Any]:
    """Re-validate a previously chosen discount (checkout path)."""
    discount = session.query(Discount).filter(
        Discount.id == discount_id,
        Discount.tenant_id == tenant_id
    ).first()
    if not discount:
        raise NotFoundError('Discount not found', code=ErrorCode.DISCOUNT_NOT_FOUND)

    return _apply(discount, cart_subtotal, items, item_count, now)


def _apply(discount: Discount, cart_subtotal, items, item_count, now) -> Dict[str, Any]:
    now = now or utcnow()
    subtotal = Decimal(str(cart_subtotal))
    if item_count is None:
        item_count = count_units(items)

    _check_eligibility(discount, subtotal, item_count, now)
    amount = calculate_discount_amount(discount, subtotal, item_count, items)
    return build_application(discount, subtotal, amount)


def describe_discount(discount: Discount) -> str:
    """Short human description shown in the portal's offers list."""
    value = Decimal(str(discount.value or 0)).normalize()
    if discount.type == DiscountType.PERCENTAGE.value:
        text = f'{value:f}% off'
        if discount.max_discount_amount is not None:
            text += f' (up to {discount.max_discount_amount})'
    elif discount.type == DiscountType.FIXED_AMOUNT.value:
        text = f'{discount.value} off'
    else:
        text = f'{int(discount.value)} free units'

    if discount.min_order_amount is not None:
        text += f' on orders from {discount.min_order_amount}'
    if discount.min_qty is not None:
        text += f' with at least {discount.min_qty} items'
    return text


def list_available_discounts(session: Session, tenant_id: int, now=None) -> List[Dict[str, Any]]:
    """Active, current discounts a customer can see (automatic and code based)."""
    now = now or utcnow()
    discounts = _current_filter(
        session.query(Discount).filter(Discount.tenant_id == tenant_id),
        now
    ).order_by(Discount.id.asc()).all()

    result = []
    for discount in discounts:
        result.append({
            'id': discount.id,
            'name': discount.name,
            'type': discount.type,
            'value': discount.value,
            'min_order_amount': discount.min_order_amount,
            'min_qty': discount.min_qty,
            'expires_at': discount.expires_at,
            'is_automatic': discount.is_automatic,
            'description': describe_discount(discount),
        })
    return result


def get_available_discounts_cached(session: Session, tenant_id: int, ttl: Optional[int] = None) -> List[Dict[str, Any]]:
    """Cache-aside wrapper around ``list_available_discounts``."""
    from tradeflow.services.cache_service import get_cache

    return get_cache().memoize(
        tenant_id, CACHE_MODULE, 'available',
        lambda: list_available_discounts(session, tenant_id),
        ttl=ttl
    )


def _invalidate_discount_cache(tenant_id: int) -> None:
    try:
        from tradeflow.services.cache_service import get_cache
        get_cache().invalidate_module(tenant_id, CACHE_MODULE)
    except RuntimeError as e:
        logger.warning(f"Discount cache invalidation skipped for tenant {tenant_id}: {e}")


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------

def _parse_decimal(data: Dict[str, Any], key: str, required: bool = False) -> Optional[Decimal]:
    raw = data.get(key)
    if raw is None or raw == '':
        if required:
            raise ValidationError(f'{key} is required')
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{key} must be a number')
    if value < 0:
        raise ValidationError(f'{key} must not be negative')
    return money(value)


def _parse_int(data: Dict[str, Any], key: str) -> Optional[int]:
    raw = data.get(key)
    if raw is None or raw == '':
        return None
    if isinstance(raw, bool):
        raise ValidationError(f'{key} must be an integer')
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ValidationError(f'{key} must be an integer')
    if value < 0:
        raise ValidationError(f'{key} must not be negative')
    return value


def _parse_when(data: Dict[str, Any], key: str):
    try:
        return parse_datetime(data.get(key))
    except (TypeError, ValueError):
        raise ValidationError(f'{key} is not a valid datetime', code=ErrorCode.INVALID_DATE)


def _apply_discount_fields(session: Session, tenant_id: int, discount: Discount, data: Dict[str, Any],
                           partial: bool) -> None:
    if not partial or 'name' in data:
        name = sanitize_text(data.get('name'), max_length=120)
        if not name:
            raise ValidationError('name is required')
        discount.name = name

    if not partial or 'type' in data:
        try:
            discount.type = DiscountType(data.get('type')).value
        except ValueError:
            raise ValidationError(f"Invalid discount type '{data.get('type')}'")

    if not partial or 'value' in data:
        discount.value = _parse_decimal(data, 'value', required=True)

    if 'code' in data:
        code = sanitize_text(data.get('code'), max_length=50)
        if code:
            clash = find_discount_by_code(session, tenant_id, code)
            if clash and clash.id != discount.id:
                raise ValidationError(f'Discount code "{code}" already exists')
        discount.code = code

    for key in ('min_order_amount', 'max_discount_amount'):
        if key in data:
            setattr(discount, key, _parse_decimal(data, key))
    if 'min_qty' in data:
        discount.min_qty = _parse_int(data, 'min_qty')
    for key in ('starts_at', 'expires_at'):
        if key in data:
            setattr(discount, key, _parse_when(data, key))
    if 'active' in data:
        if not isinstance(data['active'], bool):
            raise ValidationError('active must be true or false')
        discount.active = data['active']

    if discount.type == DiscountType.PERCENTAGE.value and discount.value > 100:
        raise ValidationError('Percentage discounts must be between 0 and 100')
    if discount.type == DiscountType.FREE_QTY.value and discount.value != discount.value.to_integral_value():
        raise ValidationError('Free quantity must be a whole number')
    if discount.starts_at and discount.expires_at and discount.starts_at > discount.expires_at:
        raise ValidationError('starts_at must be before expires_at', code=ErrorCode.INVALID_DATE)


def list_discounts(session: Session, tenant_id: int) -> List[Discount]:
    return session.query(Discount).filter(
        Discount.tenant_id == tenant_id
    ).order_by(Discount.id.desc()).all()


def create_discount(session: Session, tenant_id: int, data: Dict[str, Any]) -> Discount:
    """Create a discount (admin)."""
    try:
        discount = Discount(tenant_id=tenant_id, active=True)
        _apply_discount_fields(session, tenant_id, discount, data, partial=False)
        session.add(discount)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Discount {discount.id} created for tenant {tenant_id}")
    _invalidate_discount_cache(tenant_id)
    return discount


def update_discount(session: Session, tenant_id: int, discount_id: int, data: Dict[str, Any]) -> Discount:
    """Partially update a discount (admin)."""
    discount = session.query(Discount).filter(
        Discount.id == discount_id,
        Discount.tenant_id == tenant_id
    ).first()
    if not discount:
        raise NotFoundError('Discount not found', code=ErrorCode.DISCOUNT_NOT_FOUND)

    try:
        _apply_discount_fields(session, tenant_id, discount, data, partial=True)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Discount {discount.id} updated for tenant {tenant_id}")
    _invalidate_discount_cache(tenant_id)
    return discount

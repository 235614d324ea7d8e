"""
Receiving service - warehouse receiving against purchase orders (multi-tenant).

Scanned units accumulate on the PO line and enter stock immediately.
Receiving more than ordered is allowed and reported as over-receipt.
The PO status is derived from line progress after every scan.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tradeflow.exceptions import (
    BusinessLogicError, ErrorCode, InvalidStatusTransitionError, NotFoundError, ValidationError
)
from tradeflow.models import (
    POStatus, Product, PurchaseOrder, PurchaseOrderItem, StockMoveType, StockReferenceType
)
from tradeflow.services import stock_service
from tradeflow.utils.dates import utcnow
from tradeflow.utils.text import sanitize_text

logger = logging.getLogger(__name__)

RECEIVABLE_STATUSES = (POStatus.ORDERED.value, POStatus.PARTIAL_RECEIVED.value, POStatus.RECEIVED.value)
OPEN_STATUSES = (POStatus.DRAFT.value, POStatus.ORDERED.value, POStatus.PARTIAL_RECEIVED.value)
MAX_SCAN_QTY = 10000


def derive_po_status(lines: Iterable[Any]) -> str:
    """
    ordered: nothing received yet.
    received: every line received at least what was ordered.
    partial_received: anything in between.
    """
    lines = list(lines)
    if not lines or all(line.qty_received <= 0 for line in lines):
        return POStatus.ORDERED.value
    if all(line.qty_received >= line.qty_ordered for line in lines):
        return POStatus.RECEIVED.value
    return POStatus.PARTIAL_RECEIVED.value


def _positive_int(value, label: str, maximum: int = MAX_SCAN_QTY) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{label} must be a whole number')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f'{label} must be a whole number')
        value = int(value)
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ValidationError(f'{label} must be a whole number')
    if number < 1 or number > maximum:
        raise ValidationError(f'{label} must be between 1 and {maximum}')
    return number


def _unit_cost(value, fallback) -> Decimal:
    if value is None or value == '':
        return Decimal(str(fallback or 0))
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError('unit_cost must be a number')
    if cost < 0:
        raise ValidationError('unit_cost must not be negative')
    return cost.quantize(Decimal('0.01'))


def _recalculate_totals(po: PurchaseOrder) -> None:
    total = Decimal('0')
    for item in po.items:
        item.line_total = (Decimal(str(item.unit_cost)) * item.qty_ordered).quantize(Decimal('0.01'))
        total += item.line_total
    po.total_amount = total


def get_purchase_order(session: Session, tenant_id: int, po_id: int) -> PurchaseOrder:
    po = session.query(PurchaseOrder).filter(
        PurchaseOrder.id == po_id,
        PurchaseOrder.tenant_id == tenant_id
    ).first()
    if not po:
        raise NotFoundError('Purchase order not found')
    return po


def _get_draft(session: Session, tenant_id: int, po_id: int) -> PurchaseOrder:
    po = get_purchase_order(session, tenant_id, po_id)
    if not po.is_editable:
        raise BusinessLogicError(ErrorCode.PO_NOT_EDITABLE,
                                 f'Purchase order {po.po_number} is {po.status} and can no longer be edited')
    return po


def _get_product(session: Session, tenant_id: int, product_id) -> Product:
    product = session.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == tenant_id
    ).first()
    if not product:
        raise NotFoundError('Product not found', code=ErrorCode.PRODUCT_NOT_FOUND)
    return product


def find_product_by_code(session: Session, tenant_id: int, code: str) -> Optional[Product]:
    """Barcode match first, then SKU."""
    matches = session.query(Product).filter(
        Product.tenant_id == tenant_id,
        or_(Product.barcode == code, Product.sku == code)
    ).order_by(Product.id.asc()).all()
    for product in matches:
        if product.barcode == code:
            return product
    return matches[0] if matches else None


def _next_po_number(session: Session, tenant_id: int) -> str:
    count = session.query(func.count(PurchaseOrder.id)).filter(
        PurchaseOrder.tenant_id == tenant_id
    ).scalar() or 0
    return f'PO-{count + 1:05d}'


def list_receiving(session: Session, tenant_id: int, status: Optional[str] = None,
                   page: int = 1, limit: int = 20) -> Tuple[List[PurchaseOrder], int]:
    """Open POs by default (draft, ordered, partial_received)."""
    query = session.query(PurchaseOrder).filter(PurchaseOrder.tenant_id == tenant_id)
    if status:
        try:
            query = query.filter(PurchaseOrder.status == POStatus(status).value)
        except ValueError:
            raise ValidationError(f"Invalid status '{status}'")
    else:
        query = query.filter(PurchaseOrder.status.in_(OPEN_STATUSES))

    total = query.count()
    orders = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return orders, total


def get_receiving_detail(session: Session, tenant_id: int, po_id: int) -> Dict[str, Any]:
    return get_purchase_order(session, tenant_id, po_id).to_dict(include_items=True)


def create_purchase_order(session: Session, tenant_id: int, supplier_name: str,
                          items: Optional[List[Dict[str, Any]]] = None, notes: Optional[str] = None) -> PurchaseOrder:
    """Create a draft PO, optionally with initial lines."""
    supplier_name = sanitize_text(supplier_name, max_length=200)
    if not supplier_name:
        raise ValidationError('supplier_name is required', code=ErrorCode.MISSING_REQUIRED_FIELD,
                              payload={'field': 'supplier_name'})

    try:
        po = PurchaseOrder(
            tenant_id=tenant_id,
            po_number=_next_po_number(session, tenant_id),
            supplier_name=supplier_name,
            status=POStatus.DRAFT.value,
            notes=sanitize_text(notes, max_length=2000),
        )
        session.add(po)
        session.flush()

        for raw in items or []:
            _add_line(session, tenant_id, po, raw.get('product_id'), raw.get('qty_ordered'), raw.get('unit_cost'))
        _recalculate_totals(po)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Purchase order {po.po_number} (id={po.id}) created for tenant {tenant_id}")
    return po


def _add_line(session: Session, tenant_id: int, po: PurchaseOrder, product_id, qty_ordered, unit_cost) -> PurchaseOrderItem:
    product = _get_product(session, tenant_id, product_id)
    qty = _positive_int(qty_ordered, 'qty_ordered')

    for item in po.items:
        if item.product_id == product.id:
            item.qty_ordered += qty
            if unit_cost not in (None, ''):
                item.unit_cost = _unit_cost(unit_cost, product.cost)
            return item

    item = PurchaseOrderItem(
        product_id=product.id,
        qty_ordered=qty,
        qty_received=0,
        unit_cost=_unit_cost(unit_cost, product.cost),
    )
    po.items.append(item)
    return item


def add_po_item(session: Session, tenant_id: int, po_id: int, product_id, qty_ordered, unit_cost=None) -> PurchaseOrder:
    """Add a line to a draft PO; an existing line for the product grows instead."""
    try:
        po = _get_draft(session, tenant_id, po_id)
        _add_line(session, tenant_id, po, product_id, qty_ordered, unit_cost)
        _recalculate_totals(po)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return po


def _get_item(po: PurchaseOrder, item_id: int) -> PurchaseOrderItem:
    for item in po.items:
        if item.id == item_id:
            return item
    raise NotFoundError('Purchase order item not found')


def update_po_item_quantity(session: Session, tenant_id: int, po_id: int, item_id: int, qty_ordered,
                            unit_cost=None) -> PurchaseOrder:
    try:
        po = _get_draft(session, tenant_id, po_id)
        item = _get_item(po, item_id)
        item.qty_ordered = _positive_int(qty_ordered, 'qty_ordered')
        if unit_cost not in (None, ''):
            item.unit_cost = _unit_cost(unit_cost, item.unit_cost)
        _recalculate_totals(po)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return po


def remove_po_item(session: Session, tenant_id: int, po_id: int, item_id: int) -> PurchaseOrder:
    try:
        po = _get_draft(session, tenant_id, po_id)
        po.items.remove(_get_item(po, item_id))
        _recalculate_totals(po)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return po


def submit_purchase_order(session: Session, tenant_id: int, po_id: int) -> PurchaseOrder:
    """draft -> ordered. The warehouse can receive from then on."""
    po = get_purchase_order(session, tenant_id, po_id)
    if not po.items:
        raise ValidationError('Cannot submit an empty purchase order')

    now = utcnow()
    try:
        updated = session.query(PurchaseOrder).filter(
            PurchaseOrder.id == po.id,
            PurchaseOrder.status == POStatus.DRAFT.value
        ).update({
            PurchaseOrder.status: POStatus.ORDERED.value,
            PurchaseOrder.ordered_at: now,
            PurchaseOrder.updated_at: now,
        }, synchronize_session='evaluate')
        if not updated:
            raise InvalidStatusTransitionError(f'Purchase order {po.po_number} is {po.status}, not draft')
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Purchase order {po.po_number} submitted")
    return po


def scan(session: Session, tenant_id: int, po_id: int, barcode: Optional[str], quantity=1,
         user_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Register scanned units against a PO line.

    Fails with NOT_FOUND, PO_NOT_READY, PRODUCT_NOT_FOUND or ITEM_NOT_IN_PO.
    ``qty_received`` only grows; going past ``qty_ordered`` is flagged with
    ``is_over_received`` and not blocked.
    """
    code = sanitize_text(barcode, max_length=64)
    if not code:
        raise ValidationError('barcode is required', code=ErrorCode.MISSING_REQUIRED_FIELD,
                              payload={'field': 'barcode'})
    qty = _positive_int(quantity, 'quantity')

    po = get_purchase_order(session, tenant_id, po_id)
    if po.status not in RECEIVABLE_STATUSES:
        raise BusinessLogicError(ErrorCode.PO_NOT_READY,
                                 f'Purchase order {po.po_number} is {po.status} and cannot be received')

    product = find_product_by_code(session, tenant_id, code)
    if not product:
        raise NotFoundError(f'No product with barcode or SKU "{code}"', code=ErrorCode.PRODUCT_NOT_FOUND)

    item = next((i for i in po.items if i.product_id == product.id), None)
    if item is None:
        raise BusinessLogicError(ErrorCode.ITEM_NOT_IN_PO, f'"{product.name}" is not part of {po.po_number}')

    now = utcnow()
    try:
        session.query(PurchaseOrderItem).filter(PurchaseOrderItem.id == item.id).update({
            PurchaseOrderItem.qty_received: PurchaseOrderItem.qty_received + qty,
            PurchaseOrderItem.last_scanned_at: now,
            PurchaseOrderItem.scanned_by_user_id: user_id,
        }, synchronize_session=False)

        stock_service.increment_stock(session, product.id, qty)
        stock_service.record_stock_move(
            session, tenant_id, StockMoveType.IN, StockReferenceType.RECEIVING, po.id,
            [{'product_id': product.id, 'qty': qty}],
            notes=f'Receiving {po.po_number}'
        )

        # other devices may have scanned this PO since it was loaded
        for line in po.items:
            session.refresh(line)
        status = derive_po_status(po.items)
        if status != po.status:
            po.status = status
            if status == POStatus.RECEIVED.value and po.received_at is None:
                po.received_at = now
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Scanned {qty} x {product.name} on {po.po_number}: "
                f"{item.qty_received}/{item.qty_ordered} ({po.status})")
    return {
        'item_id': item.id,
        'product_id': product.id,
        'product_name': product.name,
        'qty_received': item.qty_received,
        'qty_ordered': item.qty_ordered,
        'remaining': item.remaining,
        'is_complete': item.is_complete,
        'is_over_received': item.is_over_received,
        'po_status': po.status,
    }

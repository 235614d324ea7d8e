"""Stock level changes and the movement ledger.

Levels only change through single conditional UPDATE statements so two
requests racing for the last unit cannot both win.
"""
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from tradeflow.models import ProductStock, StockMove, StockMoveLine, StockMoveType, StockReferenceType
from tradeflow.utils.dates import utcnow


def decrement_stock(session: Session, product_id: int, qty: int) -> bool:
    """Take ``qty`` units if that many are on hand. False when stock was short."""
    updated = session.query(ProductStock).filter(
        ProductStock.product_id == product_id,
        ProductStock.on_hand_qty >= qty
    ).update(
        {ProductStock.on_hand_qty: ProductStock.on_hand_qty - qty, ProductStock.updated_at: utcnow()},
        synchronize_session='evaluate'
    )
    return updated == 1


def increment_stock(session: Session, product_id: int, qty: int) -> None:
    """Put ``qty`` units back (cancellation) or in (receiving)."""
    updated = session.query(ProductStock).filter(
        ProductStock.product_id == product_id
    ).update(
        {ProductStock.on_hand_qty: ProductStock.on_hand_qty + qty, ProductStock.updated_at: utcnow()},
        synchronize_session='evaluate'
    )
    if not updated:
        session.add(ProductStock(product_id=product_id, on_hand_qty=qty))
        session.flush()


def record_stock_move(session: Session, tenant_id: int, move_type: StockMoveType,
                      reference_type: StockReferenceType, reference_id: int,
                      lines: List[Dict[str, int]], notes: Optional[str] = None) -> StockMove:
    """Write a movement header with one line per product."""
    move = StockMove(
        tenant_id=tenant_id,
        date=utcnow(),
        type=move_type.value,
        reference_type=reference_type.value,
        reference_id=reference_id,
        notes=notes
    )
    session.add(move)
    session.flush()

    for line in lines:
        session.add(StockMoveLine(
            stock_move_id=move.id,
            product_id=line['product_id'],
            qty=line['qty']
        ))
    return move

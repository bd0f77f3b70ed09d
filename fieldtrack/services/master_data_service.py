"""
Master data service — work orders and line items.

Work orders are immutable once created.  Line items may have their rate
revised going forward; submissions already on file keep the rate they
snapshotted, so nothing here ever touches the submissions table.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from fieldtrack.core.exceptions import (
    DuplicateKeyError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from fieldtrack.models import db
from fieldtrack.models.master_data import LineItem, WorkOrder
from fieldtrack.services.revenue import parse_rate

logger = logging.getLogger(__name__)


def _required(value, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return text


# ── Work orders ───────────────────────────────────────────────────────────────


def create_work_order(order_number) -> WorkOrder:
    """Create a work order.  ``order_number`` is an exact, case-sensitive key.

    Raises:
        ValidationError: Blank order number.
        DuplicateKeyError: Order number already exists.
    """
    number = _required(order_number, "order_number")
    exists = db.session.execute(
        select(WorkOrder.id).where(WorkOrder.order_number == number)
    ).first()
    if exists:
        raise DuplicateKeyError("WorkOrder", "order_number", number)

    wo = WorkOrder(order_number=number)
    db.session.add(wo)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateKeyError("WorkOrder", "order_number", number) from None

    logger.info("Work order created", extra={"work_order_id": wo.id})
    return wo


def list_work_orders() -> list[WorkOrder]:
    stmt = select(WorkOrder).order_by(WorkOrder.created_at, WorkOrder.order_number)
    return list(db.session.execute(stmt).scalars())


# ── Line items ────────────────────────────────────────────────────────────────


def create_line_item(work_order_id, name, uom="", rate=None, standard_manpower="") -> LineItem:
    """Add a billable line item under an existing work order.

    Raises:
        ValidationError: Missing name or a rate that is not a non-negative amount.
        InvalidReferenceError: Unknown work order.
    """
    item_name = _required(name, "name")
    unit_rate = parse_rate(rate)
    if not work_order_id or db.session.get(WorkOrder, str(work_order_id)) is None:
        raise InvalidReferenceError("WorkOrder", work_order_id)

    li = LineItem(
        work_order_id=str(work_order_id),
        name=item_name,
        uom=str(uom or "").strip(),
        rate=unit_rate,
        standard_manpower=str(standard_manpower or "").strip(),
    )
    db.session.add(li)
    db.session.commit()

    logger.info(
        "Line item created",
        extra={"line_item_id": li.id, "work_order_id": li.work_order_id},
    )
    return li


def list_line_items(work_order_id=None) -> list[LineItem]:
    stmt = select(LineItem)
    if work_order_id:
        stmt = stmt.where(LineItem.work_order_id == str(work_order_id))
    stmt = stmt.order_by(LineItem.created_at, LineItem.name)
    return list(db.session.execute(stmt).scalars())


def update_line_item_rate(line_item_id, rate) -> LineItem:
    """Revise a line item's rate for submissions created from now on.

    The row is locked while the new rate is written so an in-flight
    submission either sees the old rate or the new one, never a mix.

    Raises:
        NotFoundError: Unknown line item.
        ValidationError: Rate is not a non-negative amount.
    """
    new_rate = parse_rate(rate)
    li = db.session.execute(
        select(LineItem).where(LineItem.id == str(line_item_id)).with_for_update()
    ).scalar_one_or_none()
    if li is None:
        raise NotFoundError(resource="LineItem", resource_id=line_item_id)

    old_rate = li.rate
    li.rate = new_rate
    db.session.commit()

    logger.info(
        "Line item rate revised %s -> %s", old_rate, new_rate,
        extra={"line_item_id": li.id, "work_order_id": li.work_order_id},
    )
    return li


def line_item_payload(li: LineItem, *, include_rate: bool = True) -> dict:
    """Serialize a line item, optionally without its rate (supervisor view)."""
    data = li.to_dict()
    if not include_rate:
        data.pop("rate", None)
    return data

"""
Weekly collection endpoints: schedule upsert, batch payment posting and
the daily collection reports.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from allocation import allocate
from database import DataStore, first, get_store
from errors import ApiError, StoreError, ValidationError
from schemas import Installment, PayBatchRequest, ScheduleRowsRequest, to_decimal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/collections", tags=["collections"])

SCHEDULE_TABLE = "collection_schedule"


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _report_date(value: Optional[str]) -> str:
    if not value:
        return today()
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")


def _money(value: Decimal) -> float:
    return float(value)


def _rupees(value: Decimal) -> str:
    return format(value.normalize(), "f")


def denomination_total(denomination: Dict[str, int]) -> Decimal:
    total = Decimal("0")
    for note, count in denomination.items():
        try:
            value = Decimal(str(note))
        except InvalidOperation:
            raise ValidationError(f"Invalid note value: {note}")
        if not value.is_finite() or value <= 0:
            raise ValidationError(f"Invalid note value: {note}")
        total += value * count
    return total


@router.get("/members/{center_id}")
def members_with_next_week(center_id: str, store: DataStore = Depends(get_store)):
    """Each member's next pending installment for the collection sheet."""
    try:
        members = store.select("members", "id, name, loans!inner(id)", eq={"center_id": center_id})
        result = []
        for m in members:
            loans = m.get("loans") or []
            loan_id = loans[0].get("id") if loans else None
            if not loan_id:
                continue

            next_week = first(
                store.select(
                    SCHEDULE_TABLE,
                    "expected_amount, week_no, collection_date",
                    eq={"loan_id": loan_id, "status": "pending"},
                    order="week_no",
                    limit=1,
                )
            ) or {}

            result.append({
                "member_id": m["id"],
                "loan_id": loan_id,
                "name": m.get("name"),
                "weekly_amount": _money(to_decimal(next_week.get("expected_amount"))),
                "week_no": next_week.get("week_no"),
                "collection_date": next_week.get("collection_date"),
            })
    except StoreError:
        logger.exception("FETCH WEEKLY AMOUNT ERROR")
        raise ApiError("Failed to fetch weekly amount")
    return result


@router.post("/schedule")
def save_collection_schedule(payload: ScheduleRowsRequest, store: DataStore = Depends(get_store)):
    if not payload.rows:
        raise ValidationError("No schedule rows provided")

    # only columns the client sent, so upserts never reset paid weeks
    rows = [r.model_dump(mode="json", exclude_unset=True) for r in payload.rows]
    try:
        data = store.upsert(SCHEDULE_TABLE, rows, on_conflict="loan_id,week_no")
    except StoreError:
        logger.exception("SAVE COLLECTION SCHEDULE ERROR")
        raise ApiError("Failed to save schedule")
    return {"success": True, "data": data}


def _member_loan_id(store: DataStore, member_id) -> Optional[Any]:
    member = first(store.select("members", "loans!inner(id)", eq={"id": member_id}, limit=1))
    loans = (member or {}).get("loans") or []
    return loans[0].get("id") if loans else None


def _persist(store: DataStore, rows_by_id: Dict[Any, Dict[str, Any]], changed: List[Installment]):
    """
    Write changed installments, guarded on the values that were read.

    Returns the installments written and whether a concurrent change
    stopped the run before all of them were written.
    """
    written: List[Installment] = []
    for inst in changed:
        read = rows_by_id[inst.id]
        values = {"expected_amount": _money(inst.expected_amount), "status": inst.status}
        if inst.status == "paid":
            values["paid_amount"] = _money(inst.paid_amount)

        rows = store.update(
            SCHEDULE_TABLE,
            values,
            eq={"id": inst.id, "status": read.get("status"), "expected_amount": read.get("expected_amount")},
        )
        if not rows:
            logger.warning("Installment %s was changed by another request", inst.id)
            return written, True
        written.append(inst)
    return written, False


@router.post("/pay-batch")
def pay_batch(payload: PayBatchRequest, store: DataStore = Depends(get_store)):
    if not payload.collection:
        raise ValidationError("No collection data provided")

    total_collection = sum((to_decimal(c.amount) for c in payload.collection), Decimal("0"))
    if payload.denomination is not None:
        total_notes = denomination_total(payload.denomination)
    else:
        total_notes = total_collection

    if total_collection != total_notes:
        raise ValidationError(
            f"Denomination mismatch ₹{_rupees(total_notes)} vs ₹{_rupees(total_collection)}"
        )

    batch_id = str(uuid.uuid4())
    succeeded: List[Any] = []
    skipped: List[Dict[str, Any]] = []
    partial: List[Dict[str, Any]] = []
    unallocated: List[Dict[str, Any]] = []

    try:
        for item in payload.collection:
            if not item.member_id:
                skipped.append({"member_id": None, "reason": "missing member_id"})
                continue

            loan_id = _member_loan_id(store, item.member_id)
            if not loan_id:
                skipped.append({"member_id": item.member_id, "reason": "no loan found"})
                continue

            rows = store.select(SCHEDULE_TABLE, eq={"loan_id": loan_id}, order="week_no")
            if not rows:
                skipped.append({"member_id": item.member_id, "reason": "no installments found"})
                continue

            try:
                installments = [Installment.from_row(r) for r in rows]
            except PydanticValidationError:
                logger.exception("Batch %s: unreadable installments for loan %s", batch_id, loan_id)
                skipped.append({"member_id": item.member_id, "reason": "unreadable installments"})
                continue

            result = allocate(installments, to_decimal(item.amount))
            written, conflicted = _persist(store, {r.get("id"): r for r in rows}, result.changed)
            if conflicted:
                if not written:
                    skipped.append({"member_id": item.member_id, "reason": "concurrent update"})
                else:
                    # some weeks were written before the conflict
                    partial.append({
                        "member_id": item.member_id,
                        "applied": _money(sum((i.paid_amount for i in written if i.status == "paid"), Decimal("0"))),
                        "weeks": [i.week_no for i in written],
                        "reason": "concurrent update",
                    })
                continue

            succeeded.append(item.member_id)
            if result.unallocated > 0:
                logger.warning(
                    "Batch %s: %s left unallocated for member %s",
                    batch_id, result.unallocated, item.member_id,
                )
                unallocated.append({"member_id": item.member_id, "amount": _money(result.unallocated)})

        if payload.denomination is not None:
            store.insert("denominations", [{
                "batch_id": batch_id,
                "notes": payload.denomination,
                "total_amount": _money(total_notes),
            }])
    except StoreError:
        logger.exception("PAY BATCH ERROR (batch %s)", batch_id)
        raise ApiError("Payment failed")

    logger.info(
        "Batch %s: %d paid, %d partial, %d skipped", batch_id, len(succeeded), len(partial), len(skipped)
    )
    return {
        "message": "Collection saved successfully",
        "batch_id": batch_id,
        "succeeded": succeeded,
        "skipped": skipped,
        "partial": partial,
        "unallocated": unallocated,
    }


@router.get("/daily")
def daily_collections(on: Optional[str] = Query(None, alias="date"), store: DataStore = Depends(get_store)):
    day = _report_date(on)
    try:
        rows = store.select(
            SCHEDULE_TABLE,
            "paid_amount, collection_date, loans(members(name, centers(name)))",
            eq={"collection_date": day, "status": "paid"},
        )
    except StoreError:
        logger.exception("DAILY COLLECTIONS ERROR")
        raise ApiError("Failed to fetch daily collections")

    result = []
    for row in rows:
        member = ((row.get("loans") or {}).get("members")) or {}
        center = member.get("centers") or {}
        result.append({
            "center_name": center.get("name") or "",
            "member_name": member.get("name") or "",
            "amount": row.get("paid_amount"),
            "paid_at": row.get("collection_date"),
        })
    return result


@router.get("/daily-total")
def daily_total(on: Optional[str] = Query(None, alias="date"), store: DataStore = Depends(get_store)):
    """Total collected on a date, for the bill."""
    day = _report_date(on)
    try:
        rows = store.select(SCHEDULE_TABLE, "paid_amount", eq={"collection_date": day, "status": "paid"})
    except StoreError:
        logger.exception("DAILY TOTAL ERROR")
        raise ApiError("Failed to fetch daily total")

    total = sum((to_decimal(r.get("paid_amount")) for r in rows), Decimal("0"))
    return {"date": day, "total_amount": _money(total)}


@router.get("/unpaid-mobile")
def unpaid_for_mobile(on: Optional[str] = Query(None, alias="date"), store: DataStore = Depends(get_store)):
    day = _report_date(on)
    try:
        rows = store.select(
            SCHEDULE_TABLE,
            "id, expected_amount, paid_amount, loans(member:members(name, mobile, center:centers(name)))",
            eq={"collection_date": day},
        )
    except StoreError:
        logger.exception("UNPAID MOBILE ERROR")
        raise ApiError("Failed to fetch unpaid members")

    result = []
    for s in rows:
        expected = to_decimal(s.get("expected_amount"))
        paid = to_decimal(s.get("paid_amount"))
        if paid >= expected:
            continue
        member = ((s.get("loans") or {}).get("member")) or {}
        center = member.get("center") or {}
        result.append({
            "schedule_id": s.get("id"),
            "center_name": center.get("name"),
            "member_name": member.get("name"),
            "mobile": member.get("mobile"),
            "expected_amount": _money(expected),
            "paid_amount": _money(paid),
            "amount_due": _money(expected - paid),
        })
    return result

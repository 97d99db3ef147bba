"""
Cancellation service - cancels (ANULADA) or refunds (REEMBOLSADA) a sale.

A sale changes state at most once. The seats it held return to the
occurrence as soon as the cancellation commits.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Sale, Cancellation, User
from ..models.enums import SaleStatus, CancellationType, Role
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    UnauthenticatedError,
    MAX_NOTES_LENGTH,
    require_text,
    optional_text,
    require_int,
)
from .concurrency import begin_write, lock_for_update
from .ledger_service import append_sale_event
from riverline.time_utils import business_now, travel_datetime


MIN_REASON_LENGTH = 3


@dataclass
class CancellationResult:
    cancellation: Cancellation
    sale: Sale
    seats_released: int

    def to_dict(self) -> dict:
        return {
            "cancellation": self.cancellation.to_dict(),
            "sale": self.sale.to_dict(),
            "seats_released": self.seats_released,
        }


def _already_cancelled(sale_id: int) -> ConflictError:
    return ConflictError(
        "This sale has already been cancelled",
        code="ALREADY_CANCELLED",
        details={"sale_id": sale_id},
    )


def _append_note(existing: str | None, status: SaleStatus, reason: str, notes: str | None) -> str:
    lines = [existing, f"[{status.value}] {reason}", f"Observaciones: {notes}" if notes else None]
    return "\n".join(line for line in lines if line)


def cancel_sale(
    sale_id: int,
    *,
    reason,
    acting_user_id: int,
    cancellation_type=CancellationType.ANULACION.value,
    notes=None,
    refund_amount_cents=None,
) -> CancellationResult:
    """
    Void (ANULACION) or refund (REEMBOLSO) a confirmed sale, at most once.

    Preconditions are checked in a fixed order under the write lock:
    existence, CONFIRMADA status, no prior cancellation, ownership,
    trip-departed cutoff (sellers only), refund amount. The cancellation
    insert and the status change commit together. The unique sale_id on
    cancellations is the final guard against a concurrent duplicate.
    """
    reason = require_text(reason, "reason", min_length=MIN_REASON_LENGTH, max_length=MAX_NOTES_LENGTH)
    notes = optional_text(notes, "notes")
    try:
        cancellation_type = CancellationType(str(cancellation_type or "").strip().upper())
    except ValueError:
        raise ValidationError(
            f"Invalid cancellation type: {cancellation_type}",
            details={"field": "cancellation_type"},
        )

    try:
        begin_write()

        actor = db.session.get(User, acting_user_id)
        if not actor or not actor.is_active:
            raise UnauthenticatedError("Authentication required")

        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})

        if sale.status != SaleStatus.CONFIRMADA:
            raise ConflictError(
                f"Cannot cancel a sale in state {sale.status.value}",
                code="INVALID_STATE",
                details={"status": sale.status.value},
            )

        if db.session.query(Cancellation.id).filter_by(sale_id=sale.id).first():
            raise _already_cancelled(sale.id)

        if actor.role == Role.VENDEDOR:
            if sale.seller_id != actor.id:
                raise ForbiddenError("You can only cancel your own sales", code="NOT_SALE_OWNER")
            if travel_datetime(sale.travel_date, sale.travel_time) <= business_now():
                raise ForbiddenError(
                    "The trip has already departed. Contact an administrator to process a refund.",
                    code="TRIP_ALREADY_DEPARTED",
                )
        elif actor.role != Role.ADMINISTRADOR:
            raise ForbiddenError("You do not have permission to cancel sales", code="ROLE_NOT_ALLOWED")

        refund = None
        if cancellation_type == CancellationType.REEMBOLSO:
            if refund_amount_cents in (None, ""):
                raise ValidationError("refund_amount_cents is required for refunds", details={"field": "refund_amount_cents"})
            refund = require_int(refund_amount_cents, "refund_amount_cents", minimum=1)
            if refund > sale.total_cents:
                raise ValidationError(
                    "Refund amount cannot exceed the sale total",
                    code="REFUND_EXCEEDS_TOTAL",
                    details={"refund_amount_cents": refund, "total_cents": sale.total_cents},
                )

        new_status = cancellation_type.resulting_sale_status
        cancellation = Cancellation(
            sale_id=sale.id,
            user_id=actor.id,
            reason=reason,
            notes=notes,
            seats_released=sale.passenger_count,
            refund_amount_cents=refund,
            cancellation_type=cancellation_type,
        )
        db.session.add(cancellation)

        sale.status = new_status
        sale.notes = _append_note(sale.notes, new_status, reason, notes)
        db.session.flush()

        append_sale_event(
            sale_id=sale.id,
            event_type="sale.refunded" if refund is not None else "sale.cancelled",
            actor_user_id=actor.id,
            note=reason,
            payload={
                "cancellation_type": cancellation_type.value,
                "seats_released": sale.passenger_count,
                "refund_amount_cents": refund,
            },
        )

        db.session.commit()
    except (IntegrityError, StaleDataError):
        db.session.rollback()
        raise _already_cancelled(sale_id)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Sale %s %s by user %s: %s seats released",
        sale.sale_number, new_status.value, acting_user_id, cancellation.seats_released,
    )
    return CancellationResult(cancellation=cancellation, sale=sale, seats_released=cancellation.seats_released)


def list_cancellations(
    user: User,
    *,
    cancellation_type: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Cancellation], int]:
    """Administrators see every cancellation, sellers the ones they processed."""
    query = db.session.query(Cancellation)
    if user.role != Role.ADMINISTRADOR:
        query = query.filter(Cancellation.user_id == user.id)
    if cancellation_type:
        try:
            query = query.filter(Cancellation.cancellation_type == CancellationType(cancellation_type))
        except ValueError:
            raise ValidationError(f"Invalid cancellation type: {cancellation_type}", details={"field": "cancellation_type"})

    total = query.count()
    items = (
        query.order_by(Cancellation.created_at.desc(), Cancellation.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total

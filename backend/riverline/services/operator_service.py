from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, Vessel
from ..models.enums import OperatorStatus, Role
from ..validation import ValidationError, NotFoundError, ConflictError, require_int
from .concurrency import begin_write, lock_for_update
from riverline.time_utils import utcnow


def _vessel_taken() -> ConflictError:
    return ConflictError(
        "This vessel already has an active operator",
        code="VESSEL_HAS_ACTIVE_OPERATOR",
    )


def _load_operator(operator_id: int) -> User:
    operator = lock_for_update(db.session.query(User).filter_by(id=operator_id)).first()
    if not operator or operator.role != Role.OPERADOR_EMBARCACION:
        raise NotFoundError("Operator not found", details={"operator_id": operator_id})
    return operator


def _ensure_vessel_free(vessel_id: int, operator_id: int) -> None:
    other = db.session.query(User.id).filter(
        User.assigned_vessel_id == vessel_id,
        User.operator_status == OperatorStatus.ACTIVO,
        User.id != operator_id,
    ).first()
    if other:
        raise _vessel_taken()


def assign_vessel(operator_id: int, vessel_id) -> User:
    """
    Point an operator at a vessel. An ACTIVO operator keeps its status, so
    the vessel must not have another ACTIVO operator.

    The check runs under the write lock; the partial unique index on
    users(assigned_vessel_id) WHERE operator_status = 'ACTIVO' backs it up.
    """
    vessel_id = require_int(vessel_id, "vessel_id", minimum=1)
    try:
        begin_write()
        operator = _load_operator(operator_id)
        vessel = lock_for_update(db.session.query(Vessel).filter_by(id=vessel_id)).first()
        if not vessel:
            raise NotFoundError("Vessel not found", details={"vessel_id": vessel_id})

        if operator.operator_status == OperatorStatus.ACTIVO:
            _ensure_vessel_free(vessel.id, operator.id)

        operator.assigned_vessel_id = vessel.id
        operator.assigned_at = utcnow()
        if operator.operator_status is None:
            operator.operator_status = OperatorStatus.INACTIVO
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise _vessel_taken()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Operator %s assigned to vessel %s", operator_id, vessel_id)
    return operator


def set_operator_status(operator_id: int, status) -> User:
    try:
        status = OperatorStatus(str(status or "").strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid operator status: {status}", details={"field": "status"})

    try:
        begin_write()
        operator = _load_operator(operator_id)
        if status == OperatorStatus.ACTIVO:
            if not operator.assigned_vessel_id:
                raise ValidationError("Assign a vessel before activating the operator", code="NO_VESSEL_ASSIGNED")
            lock_for_update(db.session.query(Vessel).filter_by(id=operator.assigned_vessel_id)).first()
            _ensure_vessel_free(operator.assigned_vessel_id, operator.id)
        operator.operator_status = status
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise _vessel_taken()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Operator %s set to %s", operator_id, status.value)
    return operator


def list_operators() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.role == Role.OPERADOR_EMBARCACION)
        .order_by(User.username.asc())
        .all()
    )

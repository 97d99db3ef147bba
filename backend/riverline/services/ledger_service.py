from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import SaleEvent
"""
Sale ledger invariants

- Append-only audit log of what happened to each sale.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_sale_event(
    *,
    sale_id: int,
    event_type: str,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict] = None,
) -> SaleEvent:
    """
    Append a sale event. Flushes, never commits.
    """
    ev = SaleEvent(
        sale_id=sale_id,
        event_type=event_type,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=(note or None) and note[:255],
        payload=json.dumps(payload, default=str) if payload is not None else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_sale_events(sale_id: int) -> list[SaleEvent]:
    return (
        db.session.query(SaleEvent)
        .filter(SaleEvent.sale_id == sale_id)
        .order_by(SaleEvent.occurred_at.asc(), SaleEvent.id.asc())
        .all()
    )

from __future__ import annotations

from ..extensions import db
from riverline.time_utils import to_utc_z
from .enums import BoardingStatus, BoardingRecordType, enum_column_type


class BoardingControl(db.Model):
    """
    Per-sale boarding record for one occurrence.

    Created lazily (PENDIENTE) the first time an operator lists the
    passengers of an occurrence. The unique constraint makes concurrent
    backfills collapse to one row per sale and occurrence.
    """
    __tablename__ = "boarding_controls"
    __table_args__ = (
        db.UniqueConstraint(
            "sale_id", "vessel_id", "route_id", "travel_date", "travel_time",
            name="uq_boarding_controls_sale_occurrence",
        ),
        db.Index("ix_boarding_controls_occurrence", "vessel_id", "travel_date", "travel_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    vessel_id = db.Column(db.Integer, db.ForeignKey("vessels.id"), nullable=False)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"), nullable=False)
    travel_date = db.Column(db.Date, nullable=False)
    travel_time = db.Column(db.String(5), nullable=False)

    status = db.Column(enum_column_type(BoardingStatus, 16), nullable=False, default=BoardingStatus.PENDIENTE)
    record_type = db.Column(enum_column_type(BoardingRecordType, 16), nullable=False, default=BoardingRecordType.EMBARQUE)

    # Null until the first state change
    registered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("boarding_controls", lazy=True))
    operator = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "operator_id": self.operator_id,
            "vessel_id": self.vessel_id,
            "route_id": self.route_id,
            "travel_date": self.travel_date.isoformat() if self.travel_date else None,
            "travel_time": self.travel_time,
            "status": self.status.value if self.status else None,
            "record_type": self.record_type.value if self.record_type else None,
            "registered_at": to_utc_z(self.registered_at) if self.registered_at else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from riverline.time_utils import to_utc_z


class Setting(db.Model):
    """
    Key/value business setting (IGV rate, enabled payment methods, ...).

    value is stored as text; value_type tells the service how to decode it.
    """
    __tablename__ = "settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False, unique=True, index=True)
    value = db.Column(db.Text, nullable=False)
    value_type = db.Column(db.String(16), nullable=False, default="string")  # string/number/boolean
    description = db.Column(db.String(255), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "value": self.value,
            "value_type": self.value_type,
            "description": self.description,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }

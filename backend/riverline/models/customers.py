from __future__ import annotations

from ..extensions import db
from riverline.time_utils import to_utc_z


class Customer(db.Model):
    """
    Passenger who buys tickets, identified by national ID (DNI).

    Created on first sale, reused afterwards. Cannot be deleted while it has
    sales.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Digits only, 8-10 characters
    dni = db.Column(db.String(10), nullable=False, unique=True, index=True)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    nationality = db.Column(db.String(50), nullable=False, default="Peruana")
    address = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dni": self.dni,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "nationality": self.nationality,
            "address": self.address,
            "created_at": to_utc_z(self.created_at),
        }

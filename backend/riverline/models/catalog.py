from __future__ import annotations

from ..extensions import db
from riverline.time_utils import to_utc_z
from .enums import VesselStatus, enum_column_type


class Route(db.Model):
    """
    A priced trajectory between two river ports.

    Routes referenced by sales or schedules are deactivated, never deleted.
    """
    __tablename__ = "routes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    origin_port = db.Column(db.String(100), nullable=False)
    destination_port = db.Column(db.String(100), nullable=False)

    # Fare per passenger, in cents
    price_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "origin_port": self.origin_port,
            "destination_port": self.destination_port,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


db.Index("uq_routes_name_lower", db.func.lower(Route.name), unique=True)
db.Index(
    "uq_routes_trajectory_lower",
    db.func.lower(Route.origin_port),
    db.func.lower(Route.destination_port),
    unique=True,
)


class Vessel(db.Model):
    """
    A boat. Its capacity is the hard ceiling for every single trip occurrence
    (vessel x route x date x time).
    """
    __tablename__ = "vessels"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    vessel_type = db.Column(db.String(50), nullable=True)
    status = db.Column(enum_column_type(VesselStatus, 16), nullable=False, default=VesselStatus.ACTIVA, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "capacity": self.capacity,
            "vessel_type": self.vessel_type,
            "status": self.status.value if self.status else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


db.Index("uq_vessels_name_lower", db.func.lower(Vessel.name), unique=True)


class BoardingPort(db.Model):
    """Physical pier where passengers board; chosen per sale."""
    __tablename__ = "boarding_ports"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "address": self.address,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class VesselRoute(db.Model):
    """
    Schedule assignment of a vessel to a route.

    departure_times: ordered list of "HH:MM" strings.
    operating_days: Spanish weekday names ("lunes" .. "domingo").

    A vessel may serve several routes, but a (vessel, route) pair has at most
    one active assignment (partial unique index below).
    """
    __tablename__ = "vessel_routes"
    __table_args__ = (
        db.Index(
            "uq_vessel_routes_active_pair",
            "vessel_id",
            "route_id",
            unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active = true"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vessel_id = db.Column(db.Integer, db.ForeignKey("vessels.id"), nullable=False, index=True)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"), nullable=False, index=True)

    departure_times = db.Column(db.JSON, nullable=False, default=list)
    operating_days = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    vessel = db.relationship("Vessel", backref=db.backref("schedules", lazy=True))
    route = db.relationship("Route", backref=db.backref("schedules", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vessel_id": self.vessel_id,
            "route_id": self.route_id,
            "departure_times": list(self.departure_times or []),
            "operating_days": list(self.operating_days or []),
            "is_active": self.is_active,
            "vessel": self.vessel.to_dict() if self.vessel else None,
            "route": self.route.to_dict() if self.route else None,
        }

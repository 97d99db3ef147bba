from __future__ import annotations

from ..extensions import db
from riverline.time_utils import to_utc_z
from .enums import (
    SaleStatus,
    PaymentType,
    PaymentMethod,
    CancellationType,
    enum_column_type,
)


class Sale(db.Model):
    """
    A ticket sale for one trip occurrence.

    Only CONFIRMADA sales hold
    seats; ANULADA and REEMBOLSADA release them immediately.

    Money is integer cents. tax_rate_bps is the IGV rate in basis points
    (1800 = 18%). origin_port/destination_port are a snapshot of the route at
    sale time.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_occurrence", "vessel_id", "route_id", "travel_date", "travel_time", "status"),
        db.Index("ix_sales_seller_created", "seller_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # V{YYMMDD}-{NNN}
    sale_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    route_id = db.Column(db.Integer, db.ForeignKey("routes.id"), nullable=False, index=True)
    vessel_id = db.Column(db.Integer, db.ForeignKey("vessels.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    boarding_port_id = db.Column(db.Integer, db.ForeignKey("boarding_ports.id"), nullable=False)

    travel_date = db.Column(db.Date, nullable=False, index=True)
    travel_time = db.Column(db.String(5), nullable=False)
    boarding_time = db.Column(db.String(5), nullable=False)

    origin_port = db.Column(db.String(100), nullable=False)
    destination_port = db.Column(db.String(100), nullable=False)

    passenger_count = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_type = db.Column(enum_column_type(PaymentType, 16), nullable=False, default=PaymentType.UNICO)
    # Primary method (UNICO) or the first split (HIBRIDO)
    payment_method = db.Column(enum_column_type(PaymentMethod, 16), nullable=False)
    # HIBRIDO only: [{"method": "EFECTIVO", "amount_cents": 1000}, ...]
    payment_methods = db.Column(db.JSON, nullable=True)

    status = db.Column(enum_column_type(SaleStatus, 16), nullable=False, default=SaleStatus.CONFIRMADA, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    route = db.relationship("Route")
    vessel = db.relationship("Vessel")
    seller = db.relationship("User", foreign_keys=[seller_id])
    boarding_port = db.relationship("BoardingPort")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "route_id": self.route_id,
            "vessel_id": self.vessel_id,
            "seller_id": self.seller_id,
            "boarding_port_id": self.boarding_port_id,
            "travel_date": self.travel_date.isoformat() if self.travel_date else None,
            "travel_time": self.travel_time,
            "boarding_time": self.boarding_time,
            "origin_port": self.origin_port,
            "destination_port": self.destination_port,
            "passenger_count": self.passenger_count,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_type": self.payment_type.value if self.payment_type else None,
            "payment_method": self.payment_method.value if self.payment_method else None,
            "payment_methods": self.payment_methods,
            "status": self.status.value if self.status else None,
            "notes": self.notes,
            "customer": self.customer.to_dict() if self.customer else None,
            "vessel_name": self.vessel.name if self.vessel else None,
            "route_name": self.route.name if self.route else None,
            "boarding_port_name": self.boarding_port.name if self.boarding_port else None,
            "seller_username": self.seller.username if self.seller else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class Cancellation(db.Model):
    """
    Immutable record of a sale being voided (ANULACION) or refunded (REEMBOLSO).

    sale_id is UNIQUE: the data-level guarantee of at most one cancellation
    per sale, independent of the locked status check in the service.
    """
    __tablename__ = "cancellations"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_cancellations_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    reason = db.Column(db.String(500), nullable=False)
    notes = db.Column(db.String(500), nullable=True)
    seats_released = db.Column(db.Integer, nullable=False)
    refund_amount_cents = db.Column(db.Integer, nullable=True)
    cancellation_type = db.Column(enum_column_type(CancellationType, 16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("cancellation", uselist=False, lazy=True))
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "reason": self.reason,
            "notes": self.notes,
            "seats_released": self.seats_released,
            "refund_amount_cents": self.refund_amount_cents,
            "cancellation_type": self.cancellation_type.value if self.cancellation_type else None,
            "sale_number": self.sale.sale_number if self.sale else None,
            "username": self.user.username if self.user else None,
            "created_at": to_utc_z(self.created_at),
        }

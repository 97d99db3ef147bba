from __future__ import annotations

from ..extensions import db
from riverline.time_utils import to_utc_z
from .enums import Role, OperatorStatus, enum_column_type


class User(db.Model):
    """
    Back-office user: administrator, seller or vessel operator.

    Operator-only fields (assigned_vessel_id, operator_status, assigned_at)
    stay NULL for other roles. At most one ACTIVO operator per vessel is
    enforced by the partial unique index below.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index(
            "uq_users_active_operator_vessel",
            "assigned_vessel_id",
            unique=True,
            sqlite_where=db.text("operator_status = 'ACTIVO' AND assigned_vessel_id IS NOT NULL"),
            postgresql_where=db.text("operator_status = 'ACTIVO' AND assigned_vessel_id IS NOT NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")

    role = db.Column(enum_column_type(Role), nullable=False, default=Role.VENDEDOR, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Operator assignment
    assigned_vessel_id = db.Column(db.Integer, db.ForeignKey("vessels.id"), nullable=True, index=True)
    operator_status = db.Column(enum_column_type(OperatorStatus, 16), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    assigned_vessel = db.relationship("Vessel", backref=db.backref("operators", lazy=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMINISTRADOR

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "assigned_vessel_id": self.assigned_vessel_id,
            "operator_status": self.operator_status.value if self.operator_status else None,
            "assigned_at": to_utc_z(self.assigned_at) if self.assigned_at else None,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Server-side session record. Only the SHA-256 hash of the bearer token is
    stored; the plaintext token is handed to the client once at login.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }

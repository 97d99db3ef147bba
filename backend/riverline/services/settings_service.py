from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Setting
from ..models.enums import PaymentMethod
from ..validation import ValidationError


TAX_RATE_KEY = "igv_porcentaje"

# key -> (value_type, default, description). A None default falls back to config.
SETTINGS_CATALOG: dict[str, tuple[str, Any, str]] = {
    TAX_RATE_KEY: ("number", None, "IGV percentage applied to sales"),
    "empresa_nombre": ("string", "", "Company name printed on tickets"),
    "empresa_ruc": ("string", "", "Company tax id (RUC)"),
    "PAGO_EFECTIVO_HABILITADO": ("boolean", True, "Cash payments enabled"),
    "PAGO_TARJETA_HABILITADO": ("boolean", False, "Card payments enabled"),
    "PAGO_YAPE_HABILITADO": ("boolean", True, "Yape payments enabled"),
    "PAGO_PLIN_HABILITADO": ("boolean", True, "Plin payments enabled"),
    "PAGO_TRANSFERENCIA_HABILITADO": ("boolean", True, "Bank transfers enabled"),
}


def payment_setting_key(method: PaymentMethod) -> str:
    return f"PAGO_{method.value}_HABILITADO"


def _default_for(key: str) -> Any:
    entry = SETTINGS_CATALOG.get(key)
    if not entry:
        return None
    if key == TAX_RATE_KEY:
        return current_app.config.get("DEFAULT_IGV_PERCENT", "0")
    return entry[1]


def _decode(raw: str, value_type: str) -> Any:
    if value_type == "boolean":
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}
    if value_type == "number":
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            return None
    return raw


def _encode(key: str, value: Any) -> tuple[str, str]:
    value_type = SETTINGS_CATALOG[key][0] if key in SETTINGS_CATALOG else "string"
    if value_type == "boolean":
        if isinstance(value, str):
            value = value.strip().lower() in {"1", "true", "yes", "on"}
        return ("true" if bool(value) else "false"), value_type
    if value_type == "number":
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number", details={"field": key})
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{key} must be a number", details={"field": key})
        if key == TAX_RATE_KEY and not (Decimal("0") <= number <= Decimal("100")):
            raise ValidationError("IGV percentage must be between 0 and 100", details={"field": key})
        return str(number), value_type
    if value is None:
        value = ""
    return str(value)[:1000], value_type


def get_setting(key: str) -> Any:
    """Decoded value of a setting; catalog default when the row does not exist."""
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is None:
        return _default_for(key)
    return _decode(row.value, row.value_type)


def set_setting(key: str, value: Any, user_id: int | None = None, commit: bool = True) -> Setting:
    raw, value_type = _encode(key, value)
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is None:
        description = SETTINGS_CATALOG.get(key, (None, None, None))[2]
        row = Setting(key=key, value=raw, value_type=value_type, description=description)
        db.session.add(row)
    else:
        row.value = raw
        row.value_type = value_type
    row.updated_by_user_id = user_id
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return row


def set_many(values: dict, user_id: int | None = None) -> list[Setting]:
    """Validate every value first, then write them in one transaction."""
    if not isinstance(values, dict) or not values:
        raise ValidationError("No settings provided")
    for key, value in values.items():
        _encode(key, value)
    try:
        rows = [set_setting(key, value, user_id=user_id, commit=False) for key, value in values.items()]
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return rows


def all_settings() -> dict[str, Any]:
    """Catalog defaults merged with stored rows, JSON-friendly."""
    merged: dict[str, Any] = {key: _default_for(key) for key in SETTINGS_CATALOG}
    for row in db.session.query(Setting).all():
        merged[row.key] = _decode(row.value, row.value_type)
    return {key: (str(value) if isinstance(value, Decimal) else value) for key, value in merged.items()}


def ensure_defaults(user_id: int | None = None) -> int:
    """Insert missing catalog settings. Returns the number of rows created."""
    existing = {key for (key,) in db.session.query(Setting.key).all()}
    created = 0
    for key in SETTINGS_CATALOG:
        if key in existing:
            continue
        set_setting(key, _default_for(key), user_id=user_id, commit=False)
        created += 1
    db.session.commit()
    return created


def get_tax_rate_bps() -> int:
    """IGV rate in basis points (18% -> 1800)."""
    percent = get_setting(TAX_RATE_KEY)
    try:
        percent = Decimal(str(percent))
    except InvalidOperation:
        return 0
    if percent < 0:
        return 0
    return int((percent * 100).to_integral_value())


def is_payment_method_enabled(method: PaymentMethod) -> bool:
    return bool(get_setting(payment_setting_key(method)))

from __future__ import annotations

import html
import re
from typing import Any


# Maximum route price: S/ 1,000.00 (100,000 cents)
MAX_PRICE_CENTS = 100_000
MAX_VESSEL_CAPACITY = 500
MAX_NOTES_LENGTH = 500

DNI_RE = re.compile(r"^\d{8,10}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ServiceError(ValueError):
    """
    Base class for every failure a service reports to its caller.

    kind: taxonomy entry the API boundary maps to an HTTP status.
    code: which precondition failed (stable, test-assertable).
    """
    kind = "INTERNAL"
    status_code = 500

    def __init__(self, message: str, code: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.kind
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(ServiceError):
    """400-level input problem."""
    kind = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(ServiceError):
    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., no seats left, duplicate cancellation)."""
    kind = "CONFLICT"
    status_code = 409


class ForbiddenError(ServiceError):
    kind = "FORBIDDEN"
    status_code = 403


class UnauthenticatedError(ServiceError):
    kind = "UNAUTHENTICATED"
    status_code = 401


class InternalError(ServiceError):
    kind = "INTERNAL"
    status_code = 500


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

def sanitize_text(value: Any) -> str:
    """Trim, collapse runs of whitespace and escape HTML."""
    if value is None:
        return ""
    return html.escape(re.sub(r"\s+", " ", str(value).strip()), quote=True)


def normalize_dni(value: Any) -> str:
    """Keep digits only. Raises ValidationError unless 8-10 digits remain."""
    digits = re.sub(r"\D", "", str(value or ""))
    if not DNI_RE.match(digits):
        raise ValidationError("DNI must contain between 8 and 10 digits", code="INVALID_DNI")
    return digits


def normalize_phone(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))[:9]


def normalize_email(value: Any) -> str:
    email = str(value or "").strip().lower()
    if email and not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format", code="INVALID_EMAIL")
    return email


def require_text(value: Any, field: str, min_length: int = 1, max_length: int = 100) -> str:
    text = sanitize_text(value)
    if len(text) < min_length:
        raise ValidationError(
            f"{field} must be at least {min_length} characters",
            details={"field": field},
        )
    if len(text) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters",
            details={"field": field},
        )
    return text


def optional_text(value: Any, field: str, max_length: int = MAX_NOTES_LENGTH) -> str | None:
    if value is None:
        return None
    text = sanitize_text(value)
    if len(text) > max_length:
        raise ValidationError(
            f"{field} cannot exceed {max_length} characters",
            details={"field": field},
        )
    return text or None


def require_int(value: Any, field: str, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion: rejects bools, floats, decimals and scientific
    notation strings.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
        try:
            number = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", details={"field": field})
    else:
        raise ValidationError(f"{field} must be an integer", details={"field": field})

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", details={"field": field})
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} cannot be greater than {maximum}", details={"field": field})
    return number

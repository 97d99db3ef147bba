"""
Closed state types for every entity with a lifecycle.

Persisted by name through db.Enum(native_enum=False), so the database holds
the same strings the API returns.
"""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMINISTRADOR = "ADMINISTRADOR"
    VENDEDOR = "VENDEDOR"
    OPERADOR_EMBARCACION = "OPERADOR_EMBARCACION"


class OperatorStatus(str, enum.Enum):
    ACTIVO = "ACTIVO"
    INACTIVO = "INACTIVO"


class VesselStatus(str, enum.Enum):
    ACTIVA = "ACTIVA"
    MANTENIMIENTO = "MANTENIMIENTO"
    INACTIVA = "INACTIVA"


class SaleStatus(str, enum.Enum):
    CONFIRMADA = "CONFIRMADA"
    ANULADA = "ANULADA"
    REEMBOLSADA = "REEMBOLSADA"


class CancellationType(str, enum.Enum):
    ANULACION = "ANULACION"
    REEMBOLSO = "REEMBOLSO"

    @property
    def resulting_sale_status(self) -> SaleStatus:
        if self is CancellationType.REEMBOLSO:
            return SaleStatus.REEMBOLSADA
        return SaleStatus.ANULADA


class PaymentType(str, enum.Enum):
    UNICO = "UNICO"
    HIBRIDO = "HIBRIDO"


class PaymentMethod(str, enum.Enum):
    EFECTIVO = "EFECTIVO"
    TARJETA = "TARJETA"
    YAPE = "YAPE"
    PLIN = "PLIN"
    TRANSFERENCIA = "TRANSFERENCIA"


class BoardingStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    EMBARCADO = "EMBARCADO"
    NO_EMBARCADO = "NO_EMBARCADO"


class BoardingRecordType(str, enum.Enum):
    EMBARQUE = "EMBARQUE"
    DESEMBARQUE = "DESEMBARQUE"


def enum_column_type(enum_cls, length: int = 32):
    from ..extensions import db
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        name=enum_cls.__name__.lower(),
    )

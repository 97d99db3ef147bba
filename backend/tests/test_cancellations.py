"""
Cancellations (ANULACION) and refunds (REEMBOLSO).

Verifies seat release, the at-most-once guarantee, seller ownership and
the departed-trip cutoff.
"""

from datetime import timedelta

import pytest

from riverline.extensions import db
from riverline.models import Cancellation, Sale
from riverline.models.enums import SaleStatus
from riverline.services import availability_service, cancellation_service, ledger_service, sales_service
from riverline.time_utils import business_today
from riverline.validation import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)

from conftest import insert_sale, sale_kwargs


def _remaining(catalog, sale) -> int:
    return availability_service.check_availability(
        catalog.vessel.id, catalog.route.id, sale.travel_date, sale.travel_time, 1
    ).remaining


class TestAnulacion:
    def test_seller_cancels_own_future_sale(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, days_ahead=5, passengers=4))
        assert _remaining(catalog, sale) == 46

        result = cancellation_service.cancel_sale(
            sale.id, reason="Cambio de planes", acting_user_id=seller.id, cancellation_type="ANULACION"
        )

        assert result.sale.status == SaleStatus.ANULADA
        assert result.seats_released == 4
        assert result.cancellation.seats_released == 4
        assert result.cancellation.refund_amount_cents is None
        assert _remaining(catalog, sale) == 50

    def test_reason_and_notes_appended_to_sale_notes(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, notes="Ventana"))

        cancellation_service.cancel_sale(
            sale.id, reason="Cambio de planes", notes="Llamó por teléfono", acting_user_id=seller.id
        )

        db.session.refresh(sale)
        assert sale.notes.splitlines() == [
            "Ventana",
            "[ANULADA] Cambio de planes",
            "Observaciones: Llamó por teléfono",
        ]

    def test_cancel_event_is_recorded(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        cancellation_service.cancel_sale(sale.id, reason="Cambio de planes", acting_user_id=seller.id)

        events = ledger_service.list_sale_events(sale.id)
        assert [e.event_type for e in events] == ["sale.created", "sale.cancelled"]
        assert events[1].to_dict()["payload"]["seats_released"] == 4

    def test_second_cancellation_conflicts(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        cancellation_service.cancel_sale(sale.id, reason="Cambio de planes", acting_user_id=seller.id)

        with pytest.raises(ConflictError):
            cancellation_service.cancel_sale(sale.id, reason="Otra vez", acting_user_id=seller.id)

        assert db.session.query(Cancellation).filter_by(sale_id=sale.id).count() == 1

    def test_seller_cannot_cancel_departed_trip(self, catalog, seller):
        sale = insert_sale(catalog, seller, business_today() - timedelta(days=1))

        with pytest.raises(ForbiddenError) as exc:
            cancellation_service.cancel_sale(sale.id, reason="Cambio de planes", acting_user_id=seller.id)

        assert exc.value.code == "TRIP_ALREADY_DEPARTED"
        assert "already departed" in exc.value.message
        db.session.refresh(sale)
        assert sale.status == SaleStatus.CONFIRMADA

    def test_admin_can_cancel_departed_trip(self, catalog, seller, admin):
        sale = insert_sale(catalog, seller, business_today() - timedelta(days=1))

        result = cancellation_service.cancel_sale(sale.id, reason="Viaje suspendido", acting_user_id=admin.id)
        assert result.sale.status == SaleStatus.ANULADA
        assert result.cancellation.user_id == admin.id

    def test_seller_cannot_cancel_someone_elses_sale(self, catalog, seller, other_seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))

        with pytest.raises(ForbiddenError) as exc:
            cancellation_service.cancel_sale(sale.id, reason="Cambio de planes", acting_user_id=other_seller.id)
        assert exc.value.code == "NOT_SALE_OWNER"

    def test_operator_cannot_cancel(self, catalog, seller, operator):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))

        with pytest.raises(ForbiddenError) as exc:
            cancellation_service.cancel_sale(sale.id, reason="Cambio de planes", acting_user_id=operator.id)
        assert exc.value.code == "ROLE_NOT_ALLOWED"

    def test_unknown_sale(self, db_session, seller):
        with pytest.raises(NotFoundError):
            cancellation_service.cancel_sale(9999, reason="Cambio de planes", acting_user_id=seller.id)

    @pytest.mark.parametrize("reason", [None, "", "  ", "ok", "x" * 501])
    def test_reason_length(self, catalog, seller, reason):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        with pytest.raises(ValidationError):
            cancellation_service.cancel_sale(sale.id, reason=reason, acting_user_id=seller.id)

    def test_invalid_type(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        with pytest.raises(ValidationError):
            cancellation_service.cancel_sale(
                sale.id, reason="Cambio de planes", acting_user_id=seller.id, cancellation_type="BORRADO"
            )


class TestReembolso:
    def test_refund(self, catalog, seller, igv):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=4))

        result = cancellation_service.cancel_sale(
            sale.id,
            reason="Enfermedad",
            acting_user_id=seller.id,
            cancellation_type="REEMBOLSO",
            refund_amount_cents=50000,
        )

        assert result.sale.status == SaleStatus.REEMBOLSADA
        assert result.cancellation.refund_amount_cents == 50000
        assert [e.event_type for e in ledger_service.list_sale_events(sale.id)][-1] == "sale.refunded"

    def test_full_refund_allowed(self, catalog, seller, igv):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=4))
        result = cancellation_service.cancel_sale(
            sale.id, reason="Enfermedad", acting_user_id=seller.id,
            cancellation_type="REEMBOLSO", refund_amount_cents=sale.total_cents,
        )
        assert result.cancellation.refund_amount_cents == 56640

    def test_refund_above_total_writes_nothing(self, catalog, seller, igv):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=4))

        with pytest.raises(ValidationError) as exc:
            cancellation_service.cancel_sale(
                sale.id, reason="Enfermedad", acting_user_id=seller.id,
                cancellation_type="REEMBOLSO", refund_amount_cents=sale.total_cents + 1,
            )

        assert exc.value.code == "REFUND_EXCEEDS_TOTAL"
        assert db.session.query(Cancellation).count() == 0
        assert db.session.get(Sale, sale.id).status == SaleStatus.CONFIRMADA

    @pytest.mark.parametrize("amount", [None, 0, -5, "12.50"])
    def test_refund_amount_required_and_positive(self, catalog, seller, amount):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        with pytest.raises(ValidationError):
            cancellation_service.cancel_sale(
                sale.id, reason="Enfermedad", acting_user_id=seller.id,
                cancellation_type="REEMBOLSO", refund_amount_cents=amount,
            )


class TestListing:
    def test_seller_sees_only_own_cancellations(self, catalog, seller, other_seller, admin):
        mine = sales_service.create_sale(**sale_kwargs(catalog, seller))
        theirs = sales_service.create_sale(**sale_kwargs(catalog, other_seller))
        cancellation_service.cancel_sale(mine.id, reason="Cambio de planes", acting_user_id=seller.id)
        cancellation_service.cancel_sale(theirs.id, reason="Cambio de planes", acting_user_id=other_seller.id)

        items, total = cancellation_service.list_cancellations(seller)
        assert total == 1
        assert items[0].sale_id == mine.id

        _, total = cancellation_service.list_cancellations(admin)
        assert total == 2

    def test_filter_by_type(self, catalog, seller, admin):
        first = sales_service.create_sale(**sale_kwargs(catalog, seller))
        second = sales_service.create_sale(**sale_kwargs(catalog, seller))
        cancellation_service.cancel_sale(first.id, reason="Cambio de planes", acting_user_id=seller.id)
        cancellation_service.cancel_sale(
            second.id, reason="Enfermedad", acting_user_id=seller.id,
            cancellation_type="REEMBOLSO", refund_amount_cents=100,
        )

        items, total = cancellation_service.list_cancellations(admin, cancellation_type="REEMBOLSO")
        assert total == 1
        assert items[0].sale_id == second.id


class TestCancelEndpoint:
    def test_cancel_returns_seats_released(self, client, catalog, seller, seller_headers):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=3))

        response = client.post(
            f"/api/sales/{sale.id}/cancel",
            json={"reason": "Cambio de planes", "cancellation_type": "ANULACION"},
            headers=seller_headers,
        )

        assert response.status_code == 200
        assert response.json["seats_released"] == 3
        assert response.json["sale"]["status"] == "ANULADA"

    def test_departed_trip_is_403(self, client, catalog, seller, seller_headers):
        sale = insert_sale(catalog, seller, business_today() - timedelta(days=1))

        response = client.post(
            f"/api/sales/{sale.id}/cancel",
            json={"reason": "Cambio de planes"},
            headers=seller_headers,
        )
        assert response.status_code == 403
        assert response.json["code"] == "TRIP_ALREADY_DEPARTED"

    def test_double_cancel_is_409(self, client, catalog, seller, seller_headers):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        client.post(f"/api/sales/{sale.id}/cancel", json={"reason": "Cambio de planes"}, headers=seller_headers)

        response = client.post(
            f"/api/sales/{sale.id}/cancel", json={"reason": "Cambio de planes"}, headers=seller_headers
        )
        assert response.status_code == 409
        assert response.json["kind"] == "CONFLICT"

    def test_cancellation_listing(self, client, catalog, seller, seller_headers):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
        client.post(f"/api/sales/{sale.id}/cancel", json={"reason": "Cambio de planes"}, headers=seller_headers)

        response = client.get("/api/cancellations", headers=seller_headers)
        assert response.status_code == 200
        assert response.json["total"] == 1

    def test_unknown_user_session_is_401(self, client, db_session):
        response = client.post("/api/sales/1/cancel", json={"reason": "Cambio de planes"})
        assert response.status_code == 401


def test_deactivated_seller_cannot_cancel(catalog, seller):
    sale = sales_service.create_sale(**sale_kwargs(catalog, seller))
    seller.is_active = False
    db.session.commit()

    with pytest.raises(UnauthenticatedError):
        cancellation_service.cancel_sale(sale.id, reason="Cambio de planes", acting_user_id=seller.id)

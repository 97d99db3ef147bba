"""
Sale creation: pricing, numbering, customer upsert, payment rules and the
capacity check.
"""

from datetime import timedelta

import pytest

from riverline.extensions import db
from riverline.models import Customer, Sale
from riverline.models.enums import SaleStatus, VesselStatus
from riverline.services import catalog_service, ledger_service, sales_service, settings_service
from riverline.time_utils import business_today
from riverline.validation import ConflictError, ForbiddenError, NotFoundError, ValidationError

from conftest import customer_input, sale_kwargs


class TestTotals:
    def test_tax_rounds_half_up(self):
        assert sales_service.compute_tax_cents(25, 1800) == 5  # 4.5
        assert sales_service.compute_tax_cents(24, 1800) == 4  # 4.32
        assert sales_service.compute_tax_cents(12000, 0) == 0

    def test_compute_totals(self):
        assert sales_service.compute_totals(12000, 4, 1800) == (48000, 8640, 56640)

    def test_sale_stores_igv_breakdown(self, catalog, seller, igv):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=4))

        assert sale.unit_price_cents == 12000
        assert sale.subtotal_cents == 48000
        assert sale.tax_rate_bps == 1800
        assert sale.tax_cents == 8640
        assert sale.total_cents == 56640
        assert sale.status == SaleStatus.CONFIRMADA

    def test_sale_without_igv(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=2))
        assert sale.tax_cents == 0
        assert sale.total_cents == 24000

    def test_price_change_does_not_touch_existing_sales(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=1))
        catalog_service.update_route(catalog.route.id, price_cents=15000)

        db.session.refresh(sale)
        assert sale.unit_price_cents == 12000


class TestCreateSale:
    def test_snapshot_fields(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))

        assert sale.origin_port == "Iquitos"
        assert sale.destination_port == "Yurimaguas"
        assert sale.boarding_time == "05:30"
        assert sale.seller_id == seller.id
        assert sale.passenger_count == 4

    def test_default_boarding_time(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, boarding_time=None))
        assert sale.boarding_time == "05:30"

    def test_sale_numbers_are_sequential_per_day(self, catalog, seller):
        first = sales_service.create_sale(**sale_kwargs(catalog, seller))
        second = sales_service.create_sale(**sale_kwargs(catalog, seller, customer=customer_input("10203040")))

        prefix = "V" + business_today().strftime("%y%m%d")
        assert first.sale_number == f"{prefix}-001"
        assert second.sale_number == f"{prefix}-002"

    def test_created_event_is_recorded(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))

        events = ledger_service.list_sale_events(sale.id)
        assert [e.event_type for e in events] == ["sale.created"]
        assert events[0].actor_user_id == seller.id
        assert events[0].to_dict()["payload"]["passenger_count"] == 4

    def test_customer_is_reused_by_dni(self, catalog, seller):
        sales_service.create_sale(**sale_kwargs(catalog, seller, customer=customer_input(phone="")))
        sales_service.create_sale(**sale_kwargs(
            catalog, seller, customer=customer_input(first_name="Carla", phone="999 888 777")
        ))

        customers = db.session.query(Customer).all()
        assert len(customers) == 1
        assert customers[0].first_name == "Carla"
        assert customers[0].phone == "999888777"

    def test_dni_is_normalized(self, catalog, seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, customer=customer_input("45.678.912")))
        assert sale.customer.dni == "45678912"

    def test_invalid_dni(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, customer=customer_input("1234")))
        assert exc.value.code == "INVALID_DNI"
        assert db.session.query(Sale).count() == 0

    def test_travel_date_in_past(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, days_ahead=-1))
        assert exc.value.code == "TRAVEL_DATE_IN_PAST"

    def test_travel_date_too_far(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, days_ahead=400))
        assert exc.value.code == "TRAVEL_DATE_TOO_FAR"

    def test_not_operating_day(self, catalog, seller):
        travel_day = business_today() + timedelta(days=5)
        other_day = catalog_service.weekday_name(travel_day + timedelta(days=1))
        catalog_service.update_schedule(catalog.schedule.id, operating_days=[other_day])

        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller))
        assert exc.value.code == "NOT_OPERATING_DAY"

    def test_no_schedule(self, catalog, seller):
        catalog_service.update_schedule(catalog.schedule.id, is_active=False)

        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller))
        assert exc.value.code == "NO_SCHEDULE"

    def test_departure_time_not_in_schedule(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, travel_time="09:00"))
        assert exc.value.code == "INVALID_DEPARTURE_TIME"

    def test_vessel_in_maintenance(self, catalog, seller):
        catalog_service.update_vessel(catalog.vessel.id, status=VesselStatus.MANTENIMIENTO.value)

        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller))
        assert exc.value.code == "VESSEL_NOT_ACTIVE"

    def test_inactive_route(self, catalog, seller):
        catalog_service.deactivate_route(catalog.route.id)

        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller))
        assert exc.value.code == "ROUTE_INACTIVE"

    def test_unknown_route(self, catalog, seller):
        with pytest.raises(NotFoundError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, route_id=9999))
        assert exc.value.details == {"route_id": 9999}
        assert db.session.query(Sale).count() == 0

    def test_unknown_boarding_port(self, catalog, seller):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(**sale_kwargs(catalog, seller, boarding_port_id=9999))

    @pytest.mark.parametrize("count", [0, -1, "2.0", "1e1", True])
    def test_invalid_passenger_count(self, catalog, seller, count):
        with pytest.raises(ValidationError):
            sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=count))


class TestCapacity:
    def test_sell_out_then_reject(self, catalog, seller):
        sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=48))

        with pytest.raises(ConflictError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=3))
        assert exc.value.code == "INSUFFICIENT_AVAILABILITY"
        assert "only 2 seats left" in exc.value.message
        assert exc.value.details["remaining"] == 2

        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=2))
        assert sale.passenger_count == 2

    def test_rejected_sale_leaves_no_trace(self, catalog, seller):
        sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=50))

        with pytest.raises(ConflictError):
            sales_service.create_sale(**sale_kwargs(catalog, seller, passengers=1, customer=customer_input("11223344")))

        assert db.session.query(Sale).count() == 1
        assert db.session.query(Customer).filter_by(dni="11223344").first() is None


class TestPayments:
    def test_disabled_method_rejected(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, payment_method="TARJETA"))
        assert exc.value.code == "PAYMENT_METHOD_DISABLED"

    def test_enabled_card(self, catalog, seller):
        settings_service.set_setting("PAGO_TARJETA_HABILITADO", True)
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller, payment_method="tarjeta"))
        assert sale.payment_method.value == "TARJETA"

    def test_hybrid_payment(self, catalog, seller, igv):
        sale = sales_service.create_sale(**sale_kwargs(
            catalog, seller,
            payment_type="HIBRIDO",
            payment_method=None,
            payment_methods=[
                {"method": "EFECTIVO", "amount_cents": 40000},
                {"method": "YAPE", "amount_cents": 16640},
            ],
        ))
        assert sale.payment_type.value == "HIBRIDO"
        assert sale.payment_method.value == "EFECTIVO"
        assert len(sale.payment_methods) == 2

    def test_hybrid_within_one_cent(self, catalog, seller, igv):
        sale = sales_service.create_sale(**sale_kwargs(
            catalog, seller,
            payment_type="HIBRIDO",
            payment_methods=[
                {"method": "EFECTIVO", "amount_cents": 40000},
                {"method": "PLIN", "amount_cents": 16641},
            ],
        ))
        assert sale.total_cents == 56640

    def test_hybrid_mismatch(self, catalog, seller, igv):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(
                catalog, seller,
                payment_type="HIBRIDO",
                payment_methods=[
                    {"method": "EFECTIVO", "amount_cents": 40000},
                    {"method": "YAPE", "amount_cents": 10000},
                ],
            ))
        assert exc.value.code == "PAYMENT_TOTAL_MISMATCH"

    def test_hybrid_without_entries(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, payment_type="HIBRIDO", payment_methods=[]))
        assert exc.value.code == "INVALID_HYBRID_PAYMENT"

    def test_unknown_method(self, catalog, seller):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(**sale_kwargs(catalog, seller, payment_method="BITCOIN"))
        assert exc.value.code == "INVALID_PAYMENT_METHOD"


class TestVisibility:
    def test_seller_lists_only_own_sales(self, catalog, seller, other_seller, admin):
        sales_service.create_sale(**sale_kwargs(catalog, seller))
        sales_service.create_sale(**sale_kwargs(catalog, other_seller, customer=customer_input("10203040")))

        mine, total = sales_service.list_sales(seller)
        assert total == 1
        assert mine[0].seller_id == seller.id

        _, total = sales_service.list_sales(admin)
        assert total == 2

    def test_search_by_dni(self, catalog, seller, admin):
        sales_service.create_sale(**sale_kwargs(catalog, seller))
        sales_service.create_sale(**sale_kwargs(catalog, seller, customer=customer_input("10203040")))

        sales, total = sales_service.list_sales(admin, search="10203040")
        assert total == 1
        assert sales[0].customer.dni == "10203040"

    def test_other_sellers_sale_is_forbidden(self, catalog, seller, other_seller):
        sale = sales_service.create_sale(**sale_kwargs(catalog, seller))

        with pytest.raises(ForbiddenError) as exc:
            sales_service.get_sale(sale.id, other_seller)
        assert exc.value.code == "NOT_SALE_OWNER"


class TestSalesEndpoints:
    def _payload(self, catalog):
        return {
            "customer": customer_input(),
            "route_id": catalog.route.id,
            "vessel_id": catalog.vessel.id,
            "boarding_port_id": catalog.port.id,
            "travel_date": (business_today() + timedelta(days=3)).isoformat(),
            "travel_time": "14:00",
            "passenger_count": 2,
            "payment_type": "UNICO",
            "payment_method": "YAPE",
        }

    def test_create_returns_201(self, client, catalog, seller_headers):
        response = client.post("/api/sales", json=self._payload(catalog), headers=seller_headers)

        assert response.status_code == 201
        sale = response.json["sale"]
        assert sale["total_cents"] == 24000
        assert sale["status"] == "CONFIRMADA"
        assert sale["boarding_time"] == "13:30"
        assert sale["customer"]["dni"] == "45678912"

    def test_capacity_conflict_is_409(self, client, catalog, seller_headers):
        payload = self._payload(catalog)
        payload["passenger_count"] = 51

        response = client.post("/api/sales", json=payload, headers=seller_headers)
        assert response.status_code == 409
        assert response.json["code"] == "INSUFFICIENT_AVAILABILITY"

    def test_validation_is_400(self, client, catalog, seller_headers):
        payload = self._payload(catalog)
        payload["customer"] = None

        response = client.post("/api/sales", json=payload, headers=seller_headers)
        assert response.status_code == 400
        assert response.json["kind"] == "VALIDATION_ERROR"

    def test_unknown_route_is_404(self, client, catalog, seller_headers):
        payload = self._payload(catalog)
        payload["route_id"] = 9999

        response = client.post("/api/sales", json=payload, headers=seller_headers)
        assert response.status_code == 404
        assert response.json["kind"] == "NOT_FOUND"

    def test_operator_cannot_sell(self, client, catalog, operator_headers):
        response = client.post("/api/sales", json=self._payload(catalog), headers=operator_headers)
        assert response.status_code == 403

    def test_list_and_detail(self, client, catalog, seller_headers):
        created = client.post("/api/sales", json=self._payload(catalog), headers=seller_headers).json["sale"]

        listing = client.get("/api/sales", headers=seller_headers)
        assert listing.status_code == 200
        assert listing.json["total"] == 1

        detail = client.get(f"/api/sales/{created['id']}", headers=seller_headers)
        assert detail.status_code == 200
        assert detail.json["sale"]["sale_number"] == created["sale_number"]
        assert detail.json["cancellation"] is None

        events = client.get(f"/api/sales/{created['id']}/events", headers=seller_headers)
        assert events.status_code == 200
        assert events.json["events"][0]["event_type"] == "sale.created"

"""
Catalog management: routes, vessels, boarding ports and schedules.
"""

from datetime import date, timedelta

import pytest

from riverline.models.enums import VesselStatus
from riverline.services import catalog_service, sales_service
from riverline.time_utils import business_today
from riverline.validation import ConflictError, NotFoundError, ValidationError

from conftest import sale_kwargs


class TestRoutes:
    def test_create_route(self, db_session):
        route = catalog_service.create_route("Iquitos - Pucallpa", "Iquitos", "Pucallpa", 15000)
        assert route.id is not None
        assert route.is_active is True
        assert route.price_cents == 15000

    def test_same_origin_and_destination(self, db_session):
        with pytest.raises(ValidationError) as exc:
            catalog_service.create_route("Iquitos - Iquitos", "Iquitos", "iquitos", 1000)
        assert exc.value.code == "SAME_PORTS"

    def test_duplicate_name_is_case_insensitive(self, catalog):
        with pytest.raises(ConflictError) as exc:
            catalog_service.create_route("IQUITOS - YURIMAGUAS", "Nauta", "Requena", 1000)
        assert exc.value.code == "DUPLICATE_ROUTE_NAME"

    def test_duplicate_trajectory(self, catalog):
        with pytest.raises(ConflictError) as exc:
            catalog_service.create_route("Expreso Yurimaguas", "iquitos", "YURIMAGUAS", 1000)
        assert exc.value.code == "DUPLICATE_TRAJECTORY"

    @pytest.mark.parametrize("price", [0, -100, 100_001, "12.5", None])
    def test_price_bounds(self, db_session, price):
        with pytest.raises(ValidationError):
            catalog_service.create_route("Iquitos - Nauta", "Iquitos", "Nauta", price)

    def test_update_route(self, catalog):
        route = catalog_service.update_route(catalog.route.id, price_cents=13000, name="Iquitos - Yurimaguas Expreso")
        assert route.price_cents == 13000
        assert route.name == "Iquitos - Yurimaguas Expreso"

    def test_route_with_sales_cannot_be_deleted(self, catalog, seller):
        sales_service.create_sale(**sale_kwargs(catalog, seller))

        with pytest.raises(ConflictError) as exc:
            catalog_service.delete_route(catalog.route.id)
        assert exc.value.code == "ROUTE_IN_USE"

        route = catalog_service.deactivate_route(catalog.route.id)
        assert route.is_active is False
        assert catalog_service.list_routes(active_only=True) == []

    def test_unused_route_is_deleted(self, db_session):
        route = catalog_service.create_route("Iquitos - Nauta", "Iquitos", "Nauta", 3000)
        catalog_service.delete_route(route.id)

        with pytest.raises(NotFoundError):
            catalog_service.get_route(route.id)


class TestVessels:
    def test_create_vessel(self, db_session):
        vessel = catalog_service.create_vessel("Gilmer IV", 120, vessel_type="Lancha")
        assert vessel.status == VesselStatus.ACTIVA
        assert vessel.capacity == 120

    @pytest.mark.parametrize("capacity", [0, 501, "1.5", True])
    def test_capacity_bounds(self, db_session, capacity):
        with pytest.raises(ValidationError):
            catalog_service.create_vessel("Gilmer IV", capacity)

    def test_duplicate_name(self, catalog):
        with pytest.raises(ConflictError) as exc:
            catalog_service.create_vessel("eduardo vi", 20)
        assert exc.value.code == "DUPLICATE_VESSEL_NAME"

    def test_invalid_status(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_vessel("Gilmer IV", 20, status="HUNDIDA")

    def test_vessel_with_schedule_cannot_be_deleted(self, catalog):
        with pytest.raises(ConflictError) as exc:
            catalog_service.delete_vessel(catalog.vessel.id)
        assert exc.value.code == "VESSEL_IN_USE"

    def test_active_only_listing(self, catalog):
        catalog_service.create_vessel("Gilmer IV", 120, status="MANTENIMIENTO")
        assert [v.name for v in catalog_service.list_vessels()] == ["Eduardo VI", "Gilmer IV"]
        assert [v.name for v in catalog_service.list_vessels(active_only=True)] == ["Eduardo VI"]


class TestPorts:
    def test_ports_are_ordered(self, db_session):
        catalog_service.create_port("Puerto Henry", sort_order=2)
        catalog_service.create_port("Puerto Masusa", sort_order=1)
        assert [p.name for p in catalog_service.list_ports()] == ["Puerto Masusa", "Puerto Henry"]

    def test_update_port(self, catalog):
        port = catalog_service.update_port(catalog.port.id, address="Av. La Marina 123", is_active=False)
        assert port.address == "Av. La Marina 123"
        assert catalog_service.list_ports(active_only=True) == []

    def test_duplicate_port(self, catalog):
        with pytest.raises(ConflictError):
            catalog_service.create_port("puerto masusa")


class TestSchedules:
    def test_days_are_normalized(self, db_session):
        route = catalog_service.create_route("Iquitos - Nauta", "Iquitos", "Nauta", 3000)
        vessel = catalog_service.create_vessel("Gilmer IV", 120)

        schedule = catalog_service.create_schedule(
            vessel.id, route.id, ["14:00", "06:00"], ["Sabado", "lunes", "miercoles"]
        )
        assert schedule.operating_days == ["lunes", "miércoles", "sábado"]
        assert schedule.departure_times == ["06:00", "14:00"]

    def test_one_active_assignment_per_pair(self, catalog):
        with pytest.raises(ConflictError) as exc:
            catalog_service.create_schedule(catalog.vessel.id, catalog.route.id, ["09:00"], ["lunes"])
        assert exc.value.code == "DUPLICATE_SCHEDULE"

    def test_inactive_assignment_allows_a_new_one(self, catalog):
        catalog_service.update_schedule(catalog.schedule.id, is_active=False)
        schedule = catalog_service.create_schedule(catalog.vessel.id, catalog.route.id, ["09:00"], ["lunes"])
        assert schedule.is_active is True

    def test_reactivating_a_duplicate_conflicts(self, catalog):
        catalog_service.update_schedule(catalog.schedule.id, is_active=False)
        catalog_service.create_schedule(catalog.vessel.id, catalog.route.id, ["09:00"], ["lunes"])

        with pytest.raises(ConflictError):
            catalog_service.update_schedule(catalog.schedule.id, is_active=True)

    @pytest.mark.parametrize("times,days", [
        ([], ["lunes"]),
        (["25:00"], ["lunes"]),
        (["06:00", "06:00"], ["lunes"]),
        (["06:00"], []),
        (["06:00"], ["monday"]),
    ])
    def test_invalid_schedule(self, catalog, times, days):
        route = catalog_service.create_route("Iquitos - Nauta", "Iquitos", "Nauta", 3000)
        with pytest.raises(ValidationError):
            catalog_service.create_schedule(catalog.vessel.id, route.id, times, days)

    def test_weekday_name(self):
        assert catalog_service.weekday_name(date(2025, 1, 6)) == "lunes"
        assert catalog_service.weekday_name(date(2025, 1, 8)) == "miércoles"
        assert catalog_service.weekday_name(date(2025, 1, 12)) == "domingo"

    def test_validate_operating_day(self, catalog):
        day = business_today() + timedelta(days=3)
        assert catalog_service.validate_operating_day(catalog.vessel.id, catalog.route.id, day).id == catalog.schedule.id


class TestCatalogEndpoints:
    def test_any_authenticated_user_can_read(self, client, catalog, operator_headers):
        for path, key in [("/api/routes", "routes"), ("/api/vessels", "vessels"),
                          ("/api/ports", "ports"), ("/api/schedules", "schedules")]:
            response = client.get(path, headers=operator_headers)
            assert response.status_code == 200, path
            assert len(response.json[key]) == 1

    def test_seller_cannot_write(self, client, seller_headers):
        response = client.post("/api/routes", json={
            "name": "Iquitos - Nauta", "origin_port": "Iquitos", "destination_port": "Nauta", "price_cents": 3000,
        }, headers=seller_headers)
        assert response.status_code == 403
        assert response.json["code"] == "ROLE_NOT_ALLOWED"

    def test_admin_creates_route(self, client, admin_headers):
        response = client.post("/api/routes", json={
            "name": "Iquitos - Nauta", "origin_port": "Iquitos", "destination_port": "Nauta", "price_cents": 3000,
        }, headers=admin_headers)
        assert response.status_code == 201
        assert response.json["route"]["price_cents"] == 3000

    def test_conflict_maps_to_409(self, client, catalog, admin_headers):
        response = client.post("/api/vessels", json={"name": "Eduardo VI", "capacity": 10}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json["code"] == "DUPLICATE_VESSEL_NAME"

    def test_validation_maps_to_400(self, client, catalog, admin_headers):
        response = client.put(
            f"/api/vessels/{catalog.vessel.id}", json={"capacity": 0}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_missing_maps_to_404(self, client, admin_headers):
        response = client.delete("/api/routes/9999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json["kind"] == "NOT_FOUND"

    def test_schedule_filters(self, client, catalog, admin_headers):
        response = client.get(f"/api/schedules?vessel_id={catalog.vessel.id}&active=1", headers=admin_headers)
        assert response.status_code == 200
        assert response.json["schedules"][0]["route"]["name"] == "Iquitos - Yurimaguas"

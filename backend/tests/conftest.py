"""
Pytest fixtures for Riverline backend tests.

Provides the app on an in-memory database, per-test table wipe, catalog and
user factories, and auth helpers for route tests.
"""

from datetime import timedelta

import pytest

from riverline import create_app
from riverline.config import TestConfig
from riverline.extensions import db
from riverline.models import Sale, User
from riverline.models.enums import (
    OperatorStatus,
    PaymentMethod,
    PaymentType,
    Role,
    SaleStatus,
)
from riverline.services import auth_service, catalog_service, customer_service, settings_service
from riverline.time_utils import business_today


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(username: str, role: Role, **kwargs) -> User:
    return auth_service.create_user(
        username=username,
        email=f"{username}@riverline.test",
        password=PASSWORD,
        role=role,
        **kwargs,
    )


@pytest.fixture
def admin(db_session):
    return make_user("admin", Role.ADMINISTRADOR, first_name="Ana", last_name="Rojas")


@pytest.fixture
def seller(db_session):
    return make_user("vendedor1", Role.VENDEDOR, first_name="Luis", last_name="Pinedo")


@pytest.fixture
def other_seller(db_session):
    return make_user("vendedor2", Role.VENDEDOR)


@pytest.fixture
def igv(db_session):
    """IGV at 18%."""
    settings_service.set_setting(settings_service.TAX_RATE_KEY, "18")
    return 1800


class Catalog:
    def __init__(self, route, vessel, port, schedule):
        self.route = route
        self.vessel = vessel
        self.port = port
        self.schedule = schedule


@pytest.fixture
def catalog(db_session):
    """Route "Iquitos - Yurimaguas" served daily at 06:00 and 14:00 by a 50-seat vessel."""
    route = catalog_service.create_route("Iquitos - Yurimaguas", "Iquitos", "Yurimaguas", 12000)
    vessel = catalog_service.create_vessel("Eduardo VI", 50, vessel_type="Lancha")
    port = catalog_service.create_port("Puerto Masusa")
    schedule = catalog_service.create_schedule(vessel.id, route.id, ["06:00", "14:00"], catalog_service.WEEKDAYS)
    return Catalog(route, vessel, port, schedule)


@pytest.fixture
def operator(db_session, catalog):
    """Active operator assigned to the catalog vessel."""
    user = make_user("operador1", Role.OPERADOR_EMBARCACION)
    user.assigned_vessel_id = catalog.vessel.id
    user.operator_status = OperatorStatus.ACTIVO
    db_session.commit()
    return user


def customer_input(dni: str = "45678912", **overrides) -> dict:
    data = {"dni": dni, "first_name": "Carlos", "last_name": "Vasquez", "phone": "965123456"}
    data.update(overrides)
    return data


def sale_kwargs(catalog, seller, days_ahead: int = 5, passengers: int = 4, **overrides) -> dict:
    kwargs = {
        "customer": customer_input(),
        "route_id": catalog.route.id,
        "vessel_id": catalog.vessel.id,
        "boarding_port_id": catalog.port.id,
        "travel_date": (business_today() + timedelta(days=days_ahead)).isoformat(),
        "travel_time": "06:00",
        "boarding_time": "05:30",
        "passenger_count": passengers,
        "payment_type": "UNICO",
        "payment_method": "EFECTIVO",
        "seller_id": seller.id,
    }
    kwargs.update(overrides)
    return kwargs


_inserted = {"n": 0}


def insert_sale(catalog, seller, travel_date, passengers: int = 4, travel_time: str = "06:00",
                dni: str = "70112233", status: SaleStatus = SaleStatus.CONFIRMADA) -> Sale:
    """
    Write a sale row directly, bypassing create_sale's date checks
    (e.g., a sale for a trip that already happened).
    """
    _inserted["n"] += 1
    customer = customer_service.resolve_or_create_customer(customer_input(dni=dni))
    subtotal = catalog.route.price_cents * passengers
    sale = Sale(
        sale_number=f"T{_inserted['n']:06d}",
        customer_id=customer.id,
        route_id=catalog.route.id,
        vessel_id=catalog.vessel.id,
        seller_id=seller.id,
        boarding_port_id=catalog.port.id,
        travel_date=travel_date,
        travel_time=travel_time,
        boarding_time=travel_time,
        origin_port=catalog.route.origin_port,
        destination_port=catalog.route.destination_port,
        passenger_count=passengers,
        unit_price_cents=catalog.route.price_cents,
        subtotal_cents=subtotal,
        tax_rate_bps=0,
        tax_cents=0,
        total_cents=subtotal,
        payment_type=PaymentType.UNICO,
        payment_method=PaymentMethod.EFECTIVO,
        status=status,
    )
    db.session.add(sale)
    db.session.commit()
    return sale


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.username))


@pytest.fixture
def seller_headers(client, seller):
    return auth_headers(get_auth_token(client, seller.username))


@pytest.fixture
def operator_headers(client, operator):
    return auth_headers(get_auth_token(client, operator.username))

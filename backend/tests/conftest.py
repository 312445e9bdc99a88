"""
Pytest fixtures for wpos backend tests.

Provides test database setup, registry fixtures (outlet, staff, customer,
vehicles, products, services) and the test client.
"""

from decimal import Decimal

import pytest

from wpos import create_app
from wpos.extensions import db
from wpos.models import (
    Customer,
    CustomerVehicle,
    Outlet,
    Product,
    Service,
    User,
    Vehicle,
)
from wpos.models.vehicles import OWNERSHIP_SHOWROOM, SALE_FOR_SALE, SALE_NOT_FOR_SALE


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'BCRYPT_ROUNDS': 4,
    })

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


@pytest.fixture(scope='function')
def outlet(db_session):
    """Main branch, on UTC so civil dates equal UTC dates."""
    outlet = Outlet(name="Main Workshop", branch_type="WORKSHOP", city="Jakarta", timezone="UTC")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def other_outlet(db_session):
    outlet = Outlet(name="North Branch", branch_type="WORKSHOP", timezone="UTC")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def cashier(db_session, outlet):
    user = User(outlet_id=outlet.id, name="Front Desk", email="desk@wpos.test", password_hash="x")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def technician(db_session, outlet):
    user = User(outlet_id=outlet.id, name="Budi Mechanic", email="budi@wpos.test", password_hash="x")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Andi", phone="081200000001", address="Jl. Merdeka 1")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_vehicle(db_session, customer):
    vehicle = CustomerVehicle(
        customer_id=customer.id,
        plate_number="B1234XYZ",
        chassis_number="MH1JFD110AK000001",
        engine_number="JFD1E0000001",
        brand="Honda",
        model="Vario",
    )
    db_session.add(vehicle)
    db_session.commit()
    return vehicle


@pytest.fixture(scope='function')
def product(db_session):
    """Non-serialised part with 10 on hand."""
    product = Product(
        name="Oil Filter",
        sku="OF-001",
        cost_price=Decimal("25000.00"),
        selling_price=Decimal("40000.00"),
        stock=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def serial_product(db_session):
    """Serialised part; stock follows its AVAILABLE serial rows."""
    product = Product(
        name="Battery 12V",
        sku="BAT-12V",
        cost_price=Decimal("300000.00"),
        selling_price=Decimal("450000.00"),
        stock=0,
        has_serial_number=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def service(db_session):
    service = Service(service_code="SVC-TUNE", name="Tune-up", fee=Decimal("100000.00"))
    db_session.add(service)
    db_session.commit()
    return service


@pytest.fixture(scope='function')
def showroom_vehicle(db_session, customer):
    """Bought-in vehicle sitting in the showroom, not yet listed."""
    vehicle = Vehicle(
        plate_number="B5555SHW",
        chassis_number="CHS-SHOW-0001",
        engine_number="ENG-SHOW-0001",
        brand="Toyota",
        model="Avanza",
        ownership_status=OWNERSHIP_SHOWROOM,
        sale_status=SALE_NOT_FOR_SALE,
        purchase_price=Decimal("100000000.00"),
    )
    db_session.add(vehicle)
    db_session.commit()
    return vehicle


@pytest.fixture(scope='function')
def listed_vehicle(db_session, showroom_vehicle):
    showroom_vehicle.sale_status = SALE_FOR_SALE
    showroom_vehicle.selling_price = Decimal("120000000.00")
    db_session.commit()
    return showroom_vehicle


def intake(outlet, customer, vehicle, user, **overrides):
    """Helper to register a service job with sensible defaults."""
    from wpos.services import service_job_service

    params = dict(
        customer_id=customer.id,
        vehicle_id=vehicle.id,
        received_by_user_id=user.id,
        outlet_id=outlet.id,
        problem_description="Engine rattles at idle",
    )
    params.update(overrides)
    return service_job_service.create_service_job(**params)


def envelope(response):
    """Helper to unpack the JSON response envelope."""
    body = response.get_json()
    assert body is not None, response.data
    assert body["status"] == ("success" if response.status_code < 400 else "error")
    return body



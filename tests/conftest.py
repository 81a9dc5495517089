import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config.database import get_db
from app.core.auth.schemas import ADMIN, CASHIER, CUSTOMER, WAREHOUSE_KEEPER
from app.core.auth.service import AuthService
from app.main import app
from app.shared.database.models import (
    Base, Cart, CartLine, Customer, PaymentMethod, Product, Supplier, TaxRate
)

ACTIVE_SUPPLIER = "1790012345001"
INACTIVE_SUPPLIER = "1790099999001"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db_session):
    """Datos de referencia mínimos para el flujo"""
    db_session.add_all([
        Supplier(id=ACTIVE_SUPPLIER, business_name="Distribuidora Andina", state="ACT"),
        Supplier(id=INACTIVE_SUPPLIER, business_name="Licores del Sur", state="INA"),
        Product(id="P001", description="Ron añejo 750ml", sale_price=Decimal("10.000")),
        Product(id="P002", description="Whisky 12 años 1L", sale_price=Decimal("25.500")),
        Product(id="P003", description="Vino tinto descontinuado", sale_price=Decimal("8.000"), state="INA"),
        Product(
            id="P004", description="Cerveza lata 355ml", sale_price=Decimal("1.250"),
            initial_balance=30, current_balance=30, average_cost=Decimal("0.800")
        ),
        Product(
            id="P005", description="Agua mineral 500ml", sale_price=Decimal("0.500"),
            initial_balance=1, current_balance=1
        ),
        TaxRate(id=1, percentage=Decimal("15.00"), valid_from=date(2020, 1, 1), state="ACT"),
        TaxRate(id=2, percentage=Decimal("12.00"), valid_from=date(2020, 1, 1), state="ACT"),
        TaxRate(id=3, percentage=Decimal("12.00"), valid_from=date(2015, 1, 1), valid_to=date(2019, 12, 31), state="ACT"),
        TaxRate(id=4, percentage=Decimal("14.00"), valid_from=date(2020, 1, 1), state="INA"),
        PaymentMethod(id=1, name="EFECTIVO", state="ACT"),
        PaymentMethod(id=2, name="TARJETA", state="ACT"),
        Customer(id=1, document="0102030405", first_name="Ana", last_name="Pérez", email="ana@example.com"),
        Customer(id=2, document="9999999999", first_name="Consumidor", last_name="Final"),
    ])
    db_session.commit()
    return db_session


@pytest.fixture
def cart(catalog):
    cart = Cart(id="5f0c4a9e-6a53-4d8e-9d0b-2b1f3c1a7e10", customer_id=1)
    cart.lines = [
        CartLine(product_id="P004", quantity=2),
        CartLine(product_id="P004", quantity=1),
        CartLine(product_id="P005", quantity=1),
    ]
    catalog.add(cart)
    catalog.commit()
    return cart.id


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(user_id, role, employee_id=None):
    token = AuthService.create_access_token(
        {"user_id": user_id, "employee_id": employee_id, "role": role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _headers(1, ADMIN, employee_id=1)


@pytest.fixture
def warehouse_headers():
    return _headers(2, WAREHOUSE_KEEPER, employee_id=2)


@pytest.fixture
def cashier_headers():
    return _headers(3, CASHIER, employee_id=3)


@pytest.fixture
def customer_headers():
    return _headers(50, CUSTOMER)

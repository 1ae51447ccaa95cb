import pytest
from fastapi.testclient import TestClient

from storefront.config import Settings
from storefront.database import Database
from storefront.models.product import Product
from storefront.models.user import User, Role
from storefront.services.notification_service import NotificationService
from tests.fakes import (
    FakeGateway,
    RecordingPublisher,
    RecordingSender,
    TEST_KEY_ID,
    TEST_KEY_SECRET,
)


@pytest.fixture()
def test_settings():
    return Settings(
        DATABASE_URL="sqlite://",
        RAZORPAY_KEY_ID=TEST_KEY_ID,
        RAZORPAY_KEY_SECRET=TEST_KEY_SECRET,
        EMAIL_SERVICE="console",
        EVENTS_ENABLED=False,
        RATE_LIMIT_ENABLED=False,
        NOTIFY_MAX_RETRIES=1,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture()
def database():
    database = Database("sqlite://")
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture()
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def sender():
    return RecordingSender()


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def notifications(sender, publisher):
    return NotificationService(sender=sender, publisher=publisher, max_retries=1)


@pytest.fixture()
def make_user(db):
    def _make_user(email="customer@example.com", name="Asha Rao", role=Role.CUSTOMER):
        user = User(email=email, name=name, role=role.value)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_product(db):
    def _make_product(name="Widget", price=20.0, stock=3, **kwargs):
        product = Product(name=name, price=price, stock=stock, **kwargs)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture()
def customer(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user(email="admin@example.com", name="Store Admin", role=Role.ADMIN)


def cart_payload(product, quantity=2, shipping_cost=10.0, tax_amount=4.0, **overrides):
    """Checkout payload for a single-line cart priced from the product row."""
    subtotal = round(product.price * quantity, 2)
    payload = {
        "items": [
            {
                "product_id": product.id,
                "name": product.name,
                "price": product.price,
                "quantity": quantity,
                "sku": product.sku,
            }
        ],
        "shipping_address": {
            "first_name": "Asha",
            "last_name": "Rao",
            "email": "asha@example.com",
            "phone": "9999999999",
            "address": "12 MG Road",
            "city": "Bengaluru",
            "state": "KA",
            "zip_code": "560001",
        },
        "payment_method": "razorpay",
        "shipping_method": "Standard",
        "subtotal": subtotal,
        "shipping_cost": shipping_cost,
        "tax_amount": tax_amount,
        "total_amount": round(subtotal + shipping_cost + tax_amount, 2),
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def api(test_settings, gateway):
    """TestClient over a fully wired app; `api.db` is a session on the app's database."""
    from storefront.main import create_app

    app = create_app(test_settings, gateway=gateway)
    with TestClient(app) as client:
        session = app.state.db.session()
        client.db = session
        client.app_state = app.state
        yield client
        session.close()

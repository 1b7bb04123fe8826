import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db, create_document
from errors import PaymentGatewayError
from main import app
from payments import PaymentResult, get_payment_gateway
from schemas import Product, Cart, CartLine


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.error = None
        self.result = PaymentResult(payment_id="PAY-123", approval_url="https://paypal.test/approve?token=EC-1")

    def create_payment(self, cart_items, total_amount):
        self.calls.append((cart_items, total_amount))
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def failing_gateway(gateway):
    gateway.error = PaymentGatewayError("Payment provider unreachable")
    return gateway


@pytest.fixture
def client(db, gateway):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_payment_gateway] = lambda: (lambda: gateway)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def product_id(db):
    return create_document(db, "product", Product(title="X", price=10, total_stock=10))


@pytest.fixture
def cart_id(db, product_id):
    return create_document(db, "cart", Cart(user_id="u1", items=[CartLine(product_id=product_id, quantity=2)]))


@pytest.fixture
def order_payload(product_id, cart_id):
    return {
        "userId": "u1",
        "cartId": cart_id,
        "cartItems": [{"productId": product_id, "title": "X", "price": 10, "quantity": 2}],
        "addressInfo": {"address": "1 Main St", "city": "Springfield", "pincode": "12345", "phone": "555-0100"},
        "paymentMethod": "COD",
        "totalAmount": 50,
    }

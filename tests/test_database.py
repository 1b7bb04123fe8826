"""Database helpers."""
import mongomock
from bson import ObjectId

from database import create_document, get_documents, serialize_document, to_object_id
from schemas import Cart, CartLine


def test_to_object_id():
    oid = ObjectId()
    assert to_object_id(oid) is oid
    assert to_object_id(str(oid)) == oid
    assert to_object_id("legacy-sku") is None
    assert to_object_id(None) is None
    assert to_object_id(42) is None


def test_create_and_get_documents():
    db = mongomock.MongoClient()["storefront_test"]
    cart_id = create_document(db, "cart", Cart(user_id="u1", items=[CartLine(product_id="p1", quantity=3)]))

    docs = get_documents(db, "cart", {"userId": "u1"})
    assert len(docs) == 1
    assert docs[0]["id"] == cart_id
    assert docs[0]["items"] == [{"productId": "p1", "quantity": 3}]
    assert get_documents(db, "cart", {"userId": "u2"}) == []


def test_serialize_document():
    oid = ObjectId()
    assert serialize_document({"_id": oid, "title": "Mug"}) == {"title": "Mug", "id": str(oid)}

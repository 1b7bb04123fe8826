import os
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Depends, File, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

import database
from database import get_db, to_object_id, serialize_document, create_document, get_documents
from errors import StoreError, NotFoundError, ValidationError, PaymentAlreadyCapturedError, PersistenceError
from payments import get_payment_gateway
from schemas import (
    Document,
    Product,
    Order,
    CartItem,
    AddressInfo,
    PaymentMethod,
    PaymentStatus,
    OrderStatus,
)
from uploads import image_upload_util, read_upload, to_data_uri

logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront Orders API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
async def store_error_handler(request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": StoreError.message})


class ProductOut(Product):
    id: str


class OrderOut(Order):
    id: str


class CreateOrderRequest(Document):
    user_id: str = Field(..., alias="userId")
    cart_items: List[CartItem] = Field(..., min_length=1, alias="cartItems")
    address_info: AddressInfo = Field(..., alias="addressInfo")
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")
    total_amount: float = Field(..., ge=0, alias="totalAmount")
    cart_id: Optional[str] = Field(None, alias="cartId")


class CreateOrderResponse(Document):
    success: bool = True
    message: str = "Order created successfully"
    approval_url: Optional[str] = Field(None, alias="approvalURL")
    order_id: str = Field(..., alias="orderId")
    order_status: OrderStatus = Field(..., alias="orderStatus")
    payment_status: PaymentStatus = Field(..., alias="paymentStatus")


class CapturePaymentRequest(Document):
    payment_id: str = Field(..., alias="paymentId")
    payer_id: str = Field(..., alias="payerId")
    order_id: str = Field(..., alias="orderId")


class OrderResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: OrderOut


class OrderListResponse(BaseModel):
    success: bool = True
    data: List[OrderOut]


class UploadResponse(BaseModel):
    success: bool = True
    result: dict


@app.get("/")
def read_root():
    return {"message": "Storefront Orders API"}


@app.get("/api/shop/products", response_model=List[ProductOut])
def list_products(db=Depends(get_db)):
    try:
        return [ProductOut(**doc) for doc in get_documents(db, "product", limit=100)]
    except PyMongoError as e:
        logger.exception("Listing products failed")
        raise PersistenceError() from e
    except Exception as e:
        logger.exception("Listing products failed")
        raise StoreError() from e


@app.post("/api/admin/products", response_model=ProductOut, status_code=201)
def create_product(product: Product, db=Depends(get_db)):
    try:
        pid = create_document(db, "product", product)
        doc = db["product"].find_one({"_id": to_object_id(pid)})
        if not doc:
            raise NotFoundError("Product not found after creation")
        return ProductOut(**serialize_document(doc))
    except StoreError:
        raise
    except PyMongoError as e:
        logger.exception("Creating product failed")
        raise PersistenceError() from e
    except Exception as e:
        logger.exception("Creating product failed")
        raise StoreError() from e


@app.post("/api/admin/products/upload-image", response_model=UploadResponse)
def upload_product_image(my_file: UploadFile = File(...)):
    try:
        content = read_upload(my_file.file)
        data_uri = to_data_uri(content, my_file.content_type or "application/octet-stream")
        return UploadResponse(result=image_upload_util(data_uri))
    except StoreError:
        raise
    except Exception as e:
        logger.exception("Image upload failed")
        raise StoreError() from e


@app.post("/api/shop/order/create", response_model=CreateOrderResponse, status_code=201)
def create_order(req: CreateOrderRequest, db=Depends(get_db), gateway_factory=Depends(get_payment_gateway)):
    # cash on delivery is approved up front, everything else waits on PayPal
    try:
        approval_url = None
        payment_id = None
        if req.payment_method == PaymentMethod.COD.value:
            payment_status = PaymentStatus.APPROVED
            order_status = OrderStatus.CONFIRMED
        else:
            if req.total_amount <= 0:
                raise ValidationError("totalAmount must be positive for PayPal payments")
            gateway = gateway_factory()
            payment = gateway.create_payment(req.cart_items, req.total_amount)
            approval_url = payment.approval_url
            payment_id = payment.payment_id
            payment_status = PaymentStatus.PENDING
            order_status = OrderStatus.PROCESSING

        now = datetime.now(timezone.utc)
        order = Order(
            user_id=req.user_id,
            cart_id=req.cart_id,
            cart_items=req.cart_items,
            address_info=req.address_info,
            order_status=order_status,
            payment_method=req.payment_method,
            payment_status=payment_status,
            total_amount=req.total_amount,
            order_date=now,
            order_update_date=now,
            payment_id=payment_id,
            payer_id=None,
        )
        order_id = create_document(db, "order", order)
        logger.info("Created order %s (%s) for user %s", order_id, req.payment_method, req.user_id)
        return CreateOrderResponse(
            approval_url=approval_url,
            order_id=order_id,
            order_status=order_status,
            payment_status=payment_status,
        )
    except StoreError:
        raise
    except PyMongoError as e:
        logger.exception("Saving order failed")
        raise PersistenceError() from e
    except Exception as e:
        logger.exception("Creating order failed")
        raise StoreError() from e


def finalize_capture(db, order: dict, previous: dict):
    """
    Apply the side effects of a captured order: decrement stock for every
    line item and drop the cart. When a write fails, stock already taken is
    put back and the order's payment fields are restored before re-raising.
    """
    decremented = []
    try:
        for item in order.get("cartItems", []):
            pid = to_object_id(item.get("productId"))
            matched = 0
            if pid is not None:
                result = db["product"].update_one({"_id": pid}, {"$inc": {"totalStock": -item["quantity"]}})
                matched = result.matched_count
            if not matched:
                logger.warning("Product %s not found, skipping stock update for order %s", item.get("productId"), order["_id"])
                continue
            decremented.append((pid, item["quantity"]))

        cart_id = to_object_id(order.get("cartId"))
        if cart_id is not None:
            db["cart"].delete_one({"_id": cart_id})
    except PyMongoError:
        logger.warning("Capture of order %s failed, restoring %d product(s)", order["_id"], len(decremented))
        for pid, quantity in decremented:
            db["product"].update_one({"_id": pid}, {"$inc": {"totalStock": quantity}})
        db["order"].update_one({"_id": order["_id"]}, {"$set": previous})
        raise


@app.post("/api/shop/order/capture", response_model=OrderResponse)
def capture_payment(req: CapturePaymentRequest, db=Depends(get_db)):
    try:
        oid = to_object_id(req.order_id)
        order = db["order"].find_one({"_id": oid}) if oid is not None else None
        if not order:
            raise NotFoundError("Order not found")
        if order.get("paymentStatus") == PaymentStatus.PAID.value:
            raise PaymentAlreadyCapturedError()

        previous = {
            key: order.get(key)
            for key in ("paymentStatus", "orderStatus", "paymentId", "payerId", "orderUpdateDate")
        }
        # the paymentStatus filter makes the claim atomic against a concurrent capture
        captured = db["order"].find_one_and_update(
            {"_id": oid, "paymentStatus": {"$ne": PaymentStatus.PAID.value}},
            {
                "$set": {
                    "paymentStatus": PaymentStatus.PAID.value,
                    "orderStatus": OrderStatus.CONFIRMED.value,
                    "paymentId": req.payment_id,
                    "payerId": req.payer_id,
                    "orderUpdateDate": datetime.now(timezone.utc),
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if captured is None:
            raise PaymentAlreadyCapturedError()

        finalize_capture(db, captured, previous)
        logger.info("Captured payment %s for order %s", req.payment_id, req.order_id)
        return OrderResponse(message="Order confirmed", data=OrderOut(**serialize_document(captured)))
    except StoreError:
        raise
    except PyMongoError as e:
        logger.exception("Capturing order %s failed", req.order_id)
        raise PersistenceError() from e
    except Exception as e:
        logger.exception("Capturing order %s failed", req.order_id)
        raise StoreError() from e


@app.get("/api/shop/order/list/{user_id}", response_model=OrderListResponse)
def get_all_orders_by_user(user_id: str, db=Depends(get_db)):
    try:
        orders = get_documents(db, "order", {"userId": user_id})
        if not orders:
            raise NotFoundError("No orders found!")
        return OrderListResponse(data=[OrderOut(**doc) for doc in orders])
    except StoreError:
        raise
    except PyMongoError as e:
        logger.exception("Listing orders for user %s failed", user_id)
        raise PersistenceError() from e
    except Exception as e:
        logger.exception("Listing orders for user %s failed", user_id)
        raise StoreError() from e


@app.get("/api/shop/order/details/{id}", response_model=OrderResponse)
def get_order_details(id: str, db=Depends(get_db)):
    try:
        oid = to_object_id(id)
        doc = db["order"].find_one({"_id": oid}) if oid is not None else None
        if not doc:
            raise NotFoundError("Order not found!")
        return OrderResponse(data=OrderOut(**serialize_document(doc)))
    except StoreError:
        raise
    except PyMongoError as e:
        logger.exception("Loading order %s failed", id)
        raise PersistenceError() from e
    except Exception as e:
        logger.exception("Loading order %s failed", id)
        raise StoreError() from e


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }

    db = database.db
    if db is None:
        return response

    response["connection_status"] = "Connected"
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        logger.warning("Database health check failed: %s", e)
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

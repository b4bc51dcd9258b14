import os
import re
import uuid
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

import config
import database
from auth import (
    ADMIN_COOKIE,
    KITCHEN_COOKIE,
    AdminLoginBody,
    KitchenLoginBody,
    check_admin_credentials,
    check_kitchen_credentials,
    clear_token_cookie,
    issue_admin_token,
    issue_kitchen_token,
    require_admin,
    require_kitchen,
    require_staff,
    set_token_cookie,
)
from cart import DraftAccumulator, MongoCartStorage
from catalog import Catalog
from errors import AppError, ValidationError
from events import broadcaster
from lifecycle import OrderLifecycle
from otp import TwoFactorClient
from schemas import (
    Category,
    CategoryType,
    CartItem,
    MenuItem,
    OrderDraft,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    SpiceLevel,
)

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

CART_COOKIE = "cart_session"

app = FastAPI(title="Restaurant Ordering & Kitchen API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ---------------------- Dependencies ----------------------
def get_db():
    if database.db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database.db


def get_lifecycle(db=Depends(get_db)) -> OrderLifecycle:
    return OrderLifecycle(db)


def get_catalog(db=Depends(get_db)) -> Catalog:
    return Catalog(db)


def get_otp_client() -> TwoFactorClient:
    return TwoFactorClient()


def cart_session(request: Request, response: Response) -> str:
    session_id = request.cookies.get(CART_COOKIE)
    if not session_id:
        session_id = uuid.uuid4().hex
        response.set_cookie(CART_COOKIE, session_id, path="/", httponly=True,
                            samesite="lax", secure=config.IS_PRODUCTION)
    return session_id


def get_table_cart(session_id: str = Depends(cart_session), db=Depends(get_db)) -> DraftAccumulator:
    return DraftAccumulator(MongoCartStorage(db, session_id))


# ---------------------- Auth ----------------------
@app.post("/api/auth")
def admin_login(body: AdminLoginBody, response: Response):
    if not check_admin_credentials(body):
        logger.warning("Rejected admin login for %r", body.name)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    set_token_cookie(response, ADMIN_COOKIE, issue_admin_token(), max_age=config.ADMIN_TOKEN_EXPIRE_MIN * 60)
    return {"success": True}


@app.delete("/api/auth")
def admin_logout(response: Response):
    clear_token_cookie(response, ADMIN_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


@app.post("/api/kitchen-auth")
def kitchen_login(body: KitchenLoginBody, response: Response):
    if not check_kitchen_credentials(body):
        logger.warning("Rejected kitchen login for %r", body.name)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    set_token_cookie(response, KITCHEN_COOKIE, issue_kitchen_token(),
                     max_age=config.KITCHEN_TOKEN_EXPIRE_MIN * 60, strict=True)
    return {"success": True}


@app.delete("/api/kitchen-auth")
def kitchen_logout(response: Response):
    clear_token_cookie(response, KITCHEN_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


# ---------------------- Table OTP ----------------------
class SendOtpBody(BaseModel):
    phone_number: Optional[str] = None
    otp_template_name: Optional[str] = None


class VerifyOtpBody(BaseModel):
    phone_number: Optional[str] = None
    otp: Optional[str] = None


@app.post("/api/table-otp")
def send_table_otp(body: SendOtpBody, client: TwoFactorClient = Depends(get_otp_client)):
    result = client.send_otp(body.phone_number, body.otp_template_name)
    return {"success": True, "message": "OTP sent successfully", "session_id": result["session_id"]}


@app.post("/api/table-verify-otp")
def verify_table_otp(body: VerifyOtpBody, client: TwoFactorClient = Depends(get_otp_client)):
    result = client.verify_otp(body.phone_number, body.otp)
    return {"success": True, "message": "OTP verified successfully", "details": result["details"]}


# ---------------------- Categories & Menu ----------------------
class UpdateCategoryBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None
    type: Optional[CategoryType] = None


class UpdateMenuItemBody(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    image_urls: Optional[List[str]] = None
    price: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None
    is_available: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=0)
    spice_level: Optional[SpiceLevel] = None
    calories: Optional[int] = Field(None, ge=0)
    serving_size: Optional[str] = None
    packing_cost: Optional[float] = Field(None, ge=0)


@app.get("/categories")
def list_categories(catalog: Catalog = Depends(get_catalog)):
    return catalog.list_categories()


@app.get("/categories/{category_id}")
def get_category(category_id: str, catalog: Catalog = Depends(get_catalog)):
    return catalog.get_category(category_id)


@app.post("/categories", status_code=201)
def create_category(body: Category, catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    return catalog.create_category(body)


@app.patch("/categories/{category_id}")
def update_category(category_id: str, body: UpdateCategoryBody,
                    catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    return catalog.update_category(category_id, body.model_dump(exclude_unset=True))


@app.delete("/categories/{category_id}")
def delete_category(category_id: str, catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    catalog.delete_category(category_id)
    return {"success": True}


@app.get("/menu")
def list_menu(category: Optional[str] = None, available: bool = False, q: Optional[str] = None,
              catalog: Catalog = Depends(get_catalog)):
    if q:
        return catalog.search_menu_items(q)
    if category:
        return catalog.menu_items_by_category(category)
    if available:
        return catalog.available_menu_items()
    return catalog.list_menu_items()


@app.get("/menu/categories")
def menu_category_names(catalog: Catalog = Depends(get_catalog)):
    return catalog.menu_category_names()


@app.get("/menu/{menu_id}")
def get_menu_item(menu_id: str, catalog: Catalog = Depends(get_catalog)):
    return catalog.get_menu_item(menu_id)


@app.post("/menu", status_code=201)
def create_menu_item(body: MenuItem, catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    return catalog.create_menu_item(body)


@app.patch("/menu/{menu_id}")
def update_menu_item(menu_id: str, body: UpdateMenuItemBody,
                     catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    return catalog.update_menu_item(menu_id, body.model_dump(exclude_unset=True))


@app.delete("/menu/{menu_id}")
def delete_menu_item(menu_id: str, catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    catalog.delete_menu_item(menu_id)
    return {"success": True}


@app.post("/menu/{menu_id}/toggle")
def toggle_menu_item(menu_id: str, catalog: Catalog = Depends(get_catalog), user=Depends(require_admin)):
    return catalog.toggle_availability(menu_id)


# ---------------------- Table cart & checkout ----------------------
class AddToCartBody(BaseModel):
    menu_id: str
    special_request: Optional[str] = None


class CartQuantityBody(BaseModel):
    quantity: int


class CheckoutBody(BaseModel):
    name: str = ""
    phone_number: str = ""


def snapshot_menu_item(catalog: Catalog, menu_id: str, special_request: Optional[str] = None) -> CartItem:
    menu = catalog.get_menu_item(menu_id)
    if not menu.get("is_available", True):
        raise ValidationError(f"{menu['name']} is not available right now")
    return CartItem(
        menu_id=menu["id"],
        name=menu["name"],
        price=menu["price"],
        image_url=menu.get("image_url"),
        description=menu.get("description"),
        category=menu.get("category"),
        special_request=special_request,
    )


@app.get("/tables/{table_number}/cart")
def view_cart(table_number: str, cart: DraftAccumulator = Depends(get_table_cart)):
    return cart.snapshot()


@app.post("/tables/{table_number}/cart/items")
def add_to_cart(table_number: str, body: AddToCartBody, cart: DraftAccumulator = Depends(get_table_cart),
                catalog: Catalog = Depends(get_catalog)):
    cart.add_item(snapshot_menu_item(catalog, body.menu_id, body.special_request))
    return cart.snapshot()


@app.patch("/tables/{table_number}/cart/items/{menu_id}")
def set_cart_quantity(table_number: str, menu_id: str, body: CartQuantityBody,
                      cart: DraftAccumulator = Depends(get_table_cart)):
    cart.update_quantity(menu_id, body.quantity)
    return cart.snapshot()


@app.delete("/tables/{table_number}/cart/items/{menu_id}")
def remove_from_cart(table_number: str, menu_id: str, cart: DraftAccumulator = Depends(get_table_cart)):
    cart.remove_item(menu_id)
    return cart.snapshot()


@app.delete("/tables/{table_number}/cart")
def clear_cart(table_number: str, cart: DraftAccumulator = Depends(get_table_cart)):
    cart.clear()
    return cart.snapshot()


def validate_checkout(body: CheckoutBody) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not body.name.strip():
        errors["name"] = "Name is required"
    digits = re.sub(r"\D", "", body.phone_number)
    if not body.phone_number.strip():
        errors["phone_number"] = "Phone number is required"
    elif not re.fullmatch(r"[0-9]{10}", digits):
        errors["phone_number"] = "Please enter a valid 10-digit phone number"
    if errors:
        raise ValidationError("; ".join(errors.values()))
    return {"name": body.name.strip(), "phone_number": digits}


@app.post("/tables/{table_number}/checkout", status_code=201)
def checkout(table_number: str, body: CheckoutBody, cart: DraftAccumulator = Depends(get_table_cart),
             lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    customer = validate_checkout(body)
    if cart.total_item_count() == 0:
        raise ValidationError("Your cart is empty!")

    order = lifecycle.create_order(OrderDraft(
        username=customer["name"],
        user_type='guest',
        phone_number=customer["phone_number"],
        order_type='dine-in',
        table_number=table_number,
        items=cart.to_order_items(),
        total_amount=cart.total_amount(),
        payment_status='pending',
    ))
    cart.clear()
    broadcaster.publish("new_order", order, f"New order from table {table_number}")
    return order


# ---------------------- Orders & kitchen ----------------------
class WalkUpLine(BaseModel):
    menu_id: str
    quantity: int = Field(1, ge=1)
    special_request: Optional[str] = None


class WalkUpOrderBody(BaseModel):
    username: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    order_type: OrderType = 'walk-up'
    apartment: Optional[str] = None
    flat_number: Optional[str] = None
    other_address: Optional[str] = None
    delivery_note: Optional[str] = None
    items: List[WalkUpLine] = Field(..., min_length=1)
    payment_status: PaymentStatus = 'pending'
    payment_method: Optional[PaymentMethod] = None
    staff_name: Optional[str] = None


class UpdateOrderStatusBody(BaseModel):
    status: OrderStatus
    staff_name: Optional[str] = None
    note: Optional[str] = None


class UpdatePaymentBody(BaseModel):
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    staff_name: Optional[str] = None
    note: Optional[str] = None


@app.post("/orders", status_code=201)
def place_walk_up_order(body: WalkUpOrderBody, user=Depends(require_admin),
                        catalog: Catalog = Depends(get_catalog),
                        lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    # walk-up drafts live only for this request
    draft = DraftAccumulator()
    for line in body.items:
        item = snapshot_menu_item(catalog, line.menu_id, line.special_request)
        already = draft.get(item.menu_id)
        before = already.quantity if already else 0
        draft.add_item(item)
        draft.update_quantity(item.menu_id, before + line.quantity)

    order = lifecycle.create_order(OrderDraft(
        username=body.username,
        user_type='guest',
        phone_number=body.phone_number,
        apartment=body.apartment,
        flat_number=body.flat_number,
        other_address=body.other_address,
        order_type=body.order_type,
        delivery_note=body.delivery_note,
        items=draft.to_order_items(),
        total_amount=draft.total_amount(),
        payment_status=body.payment_status,
        payment_method=body.payment_method,
        staff_name=body.staff_name,
    ))
    broadcaster.publish("new_order", order, "New walk-up order")
    return order


@app.get("/orders")
def list_orders(status: Optional[OrderStatus] = None, recent: bool = False, details: bool = False,
                user=Depends(require_staff), lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    if status:
        return lifecycle.list_orders_by_status(status)
    if recent:
        return lifecycle.recent_orders()
    if details:
        return lifecycle.orders_with_menu_details()
    return lifecycle.list_orders()


@app.get("/orders/{order_id}")
def get_order(order_id: str, user=Depends(require_staff), lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return lifecycle.get_order(order_id)


@app.get("/orders/{order_id}/logs")
def get_order_logs(order_id: str, user=Depends(require_staff), lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    lifecycle.get_order(order_id)
    return lifecycle.kitchen_logs(order_id)


@app.patch("/orders/{order_id}/status")
def update_order_status(order_id: str, body: UpdateOrderStatusBody, user=Depends(require_staff),
                        lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    order = lifecycle.update_status(order_id, body.status, body.staff_name, body.note)
    broadcaster.publish("status_changed", order)
    return order


@app.patch("/orders/{order_id}/payment")
def update_order_payment(order_id: str, body: UpdatePaymentBody, user=Depends(require_staff),
                         lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    order = lifecycle.update_payment(order_id, body.payment_status, body.payment_method,
                                     body.staff_name, body.note)
    broadcaster.publish("payment_updated", order)
    return order


@app.get("/kitchen/orders")
def todays_orders(user=Depends(require_kitchen), lifecycle: OrderLifecycle = Depends(get_lifecycle)):
    return lifecycle.todays_orders()


@app.get("/kitchen/orders/stream")
async def stream_kitchen_orders(user=Depends(require_kitchen)):
    """Server-Sent Events stream for the kitchen screens."""
    queue = broadcaster.subscribe()
    return StreamingResponse(broadcaster.stream(queue), media_type="text/event-stream")


# ---------------------- Misc ----------------------
@app.get("/")
def read_root():
    return {"message": "Restaurant Ordering & Kitchen API"}


@app.get("/test")
def test_database():
    response: Dict[str, Any] = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if config.DATABASE_URL else "❌ Not Set"
            response["database_name"] = config.DATABASE_NAME or "❌ Not Set"
            try:
                collections = database.db.list_collection_names()
                response["collections"] = collections[:10]
                response["connection_status"] = "Connected"
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

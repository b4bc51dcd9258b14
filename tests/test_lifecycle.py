from datetime import timedelta

import pytest
from bson import ObjectId

from errors import NotFoundError
from lifecycle import KITCHEN_LOGS, ORDERS, STATUS_LOG_ACTIONS, OrderLifecycle


def draft(**overrides):
    base = {
        "username": "Ravi",
        "user_type": "guest",
        "order_type": "dine-in",
        "table_number": "7",
        "items": [
            {"menu_id": "m-burger", "name": "Burger", "quantity": 2, "price": 150},
            {"menu_id": "m-fries", "name": "Fries", "quantity": 1, "price": 80},
        ],
        "total_amount": 380,
        "payment_status": "pending",
    }
    base.update(overrides)
    return base


def actions(lifecycle, order_id):
    return [entry["action"] for entry in reversed(lifecycle.kitchen_logs(order_id))]


def test_create_order_sets_timestamps_and_initial_status(lifecycle):
    order = lifecycle.create_order(draft())
    assert order["status"] == "order-received"
    assert order["created_at"] == order["updated_at"]
    assert order["estimated_ready_time"] == order["created_at"] + timedelta(minutes=30)
    assert order["total_amount"] == 380
    assert [i["name"] for i in order["items"]] == ["Burger", "Fries"]


def test_create_order_ignores_status_on_the_draft(lifecycle):
    order = lifecycle.create_order(draft(status="delivered"))
    assert order["status"] == "order-received"


def test_create_order_writes_one_received_log(lifecycle):
    order = lifecycle.create_order(draft())
    (entry,) = lifecycle.kitchen_logs(order["id"])
    assert entry["action"] == "received"
    assert entry["staff_name"] == "System"
    assert entry["note"] == "Order created"


def test_create_order_uses_supplied_staff_name(lifecycle, db):
    order = lifecycle.create_order(draft(staff_name="Meera", order_type="walk-up"))
    (entry,) = lifecycle.kitchen_logs(order["id"])
    assert entry["staff_name"] == "Meera"
    assert "staff_name" not in db[ORDERS].find_one({"_id": ObjectId(order["id"])})


def test_create_order_keeps_mismatched_total(lifecycle):
    order = lifecycle.create_order(draft(total_amount=999))
    assert order["total_amount"] == 999


@pytest.mark.parametrize("status,action", [
    ("order-received", "received"),
    ("cooking", "started-cooking"),
    ("out-for-delivery", "received"),
    ("delivered", "completed"),
    ("cancelled", "cancelled"),
])
def test_status_log_action_mapping(lifecycle, status, action):
    order = lifecycle.create_order(draft())
    lifecycle.update_status(order["id"], status, staff_name="Alice")
    latest = lifecycle.kitchen_logs(order["id"])[0]
    assert latest["action"] == action
    assert latest["staff_name"] == "Alice"
    assert STATUS_LOG_ACTIONS[status] == action


def test_status_update_without_staff_writes_no_log(lifecycle):
    order = lifecycle.create_order(draft())
    updated = lifecycle.update_status(order["id"], "cooking")
    assert updated["status"] == "cooking"
    assert actions(lifecycle, order["id"]) == ["received"]


def test_any_status_may_follow_any_other(lifecycle):
    order = lifecycle.create_order(draft())
    for status in ("delivered", "order-received", "cancelled", "cooking"):
        assert lifecycle.update_status(order["id"], status)["status"] == status


def test_status_note_is_stored(lifecycle):
    order = lifecycle.create_order(draft())
    lifecycle.update_status(order["id"], "cancelled", staff_name="Bob", note="customer left")
    assert lifecycle.kitchen_logs(order["id"])[0]["note"] == "customer left"


def test_order_to_delivered_end_to_end(lifecycle):
    order = lifecycle.create_order(draft())
    final = lifecycle.update_status(order["id"], "delivered", staff_name="Bob")
    assert final["status"] == "delivered"
    assert actions(lifecycle, order["id"]) == ["received", "completed"]
    assert final["updated_at"] > final["created_at"]


def test_payment_update_default_note(lifecycle):
    order = lifecycle.create_order(draft())
    updated = lifecycle.update_payment(order["id"], "paid", payment_method="upi", staff_name="Carol")
    assert updated["payment_status"] == "paid"
    assert updated["payment_method"] == "upi"
    entry = lifecycle.kitchen_logs(order["id"])[0]
    assert entry["action"] == "payment-updated"
    assert entry["note"] == "Payment status updated to paid"


def test_payment_update_custom_note_and_no_staff(lifecycle):
    order = lifecycle.create_order(draft(payment_method="card"))
    lifecycle.update_payment(order["id"], "failed", staff_name="Carol", note="card declined")
    assert lifecycle.kitchen_logs(order["id"])[0]["note"] == "card declined"

    updated = lifecycle.update_payment(order["id"], "pending")
    assert updated["payment_method"] is None
    assert len(lifecycle.kitchen_logs(order["id"])) == 2


def test_status_and_payment_are_independent(lifecycle):
    order = lifecycle.create_order(draft())
    lifecycle.update_status(order["id"], "delivered")
    updated = lifecycle.update_payment(order["id"], "failed")
    assert (updated["status"], updated["payment_status"]) == ("delivered", "failed")


@pytest.mark.parametrize("order_id", [str(ObjectId()), "not-an-id", ""])
def test_unknown_order_is_not_found(lifecycle, db, order_id):
    with pytest.raises(NotFoundError):
        lifecycle.update_status(order_id, "cooking", staff_name="Alice")
    with pytest.raises(NotFoundError):
        lifecycle.update_payment(order_id, "paid", staff_name="Alice")
    with pytest.raises(NotFoundError):
        lifecycle.get_order(order_id)
    assert db[KITCHEN_LOGS].count_documents({}) == 0


class BrokenCollection:
    def insert_one(self, doc):
        raise RuntimeError("log store unavailable")


class LogsDown:
    def __init__(self, db):
        self.db = db

    def __getitem__(self, name):
        if name == KITCHEN_LOGS:
            return BrokenCollection()
        return self.db[name]


def test_failed_log_append_does_not_fail_the_mutation(lifecycle, db, clock):
    order = lifecycle.create_order(draft())
    degraded = OrderLifecycle(LogsDown(db), clock=clock)

    assert degraded.update_status(order["id"], "cooking", staff_name="Alice")["status"] == "cooking"
    assert degraded.update_payment(order["id"], "paid", staff_name="Alice")["payment_status"] == "paid"
    assert actions(lifecycle, order["id"]) == ["received"]


def test_create_order_log_failure_propagates(db, clock):
    with pytest.raises(RuntimeError):
        OrderLifecycle(LogsDown(db), clock=clock).create_order(draft())


def test_list_orders_newest_first_and_by_status(lifecycle):
    first = lifecycle.create_order(draft(username="A"))
    second = lifecycle.create_order(draft(username="B"))
    lifecycle.update_status(first["id"], "cooking")

    assert [o["username"] for o in lifecycle.list_orders()] == ["B", "A"]
    assert [o["id"] for o in lifecycle.list_orders_by_status("cooking")] == [first["id"]]
    assert [o["id"] for o in lifecycle.list_orders_by_status("order-received")] == [second["id"]]


def test_recent_and_todays_orders_skip_old_ones(lifecycle, db, clock):
    fresh = lifecycle.create_order(draft())
    old = dict(db[ORDERS].find_one({"_id": ObjectId(fresh["id"])}))
    old.pop("_id")
    db[ORDERS].insert_one({**old, "username": "yesterday", "created_at": clock.now - timedelta(hours=12)})
    db[ORDERS].insert_one({**old, "username": "last week", "created_at": clock.now - timedelta(days=7)})

    assert [o["username"] for o in lifecycle.recent_orders()] == ["Ravi", "yesterday"]
    assert [o["username"] for o in lifecycle.todays_orders()] == ["Ravi"]


def test_orders_with_menu_details(lifecycle, menu):
    order = lifecycle.create_order(draft(items=[
        {"menu_id": menu["burger"]["id"], "name": "Burger", "quantity": 1, "price": 150},
        {"menu_id": str(ObjectId()), "name": "Retired dish", "quantity": 1, "price": 10},
    ], total_amount=160))

    (listed,) = lifecycle.orders_with_menu_details()
    assert listed["id"] == order["id"]
    burger, retired = listed["items"]
    assert burger["menu_details"] == {"image_url": "https://img/burger.png",
                                      "description": "Double patty", "category": "Mains"}
    assert retired["menu_details"] is None


def test_kitchen_logs_newest_first(lifecycle):
    order = lifecycle.create_order(draft())
    lifecycle.update_status(order["id"], "cooking", staff_name="Alice")
    lifecycle.update_status(order["id"], "delivered", staff_name="Bob")
    assert [e["action"] for e in lifecycle.kitchen_logs(order["id"])] == ["completed", "started-cooking", "received"]

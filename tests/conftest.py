from datetime import datetime, timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

import config
import database
import main
from catalog import Catalog
from lifecycle import OrderLifecycle
from schemas import Category, MenuItem

ADMIN = {"name": "Asha", "dob": "1990-01-01", "aadhaar": "123412341234", "pan": "ABCDE1234F", "phone": "9876543210"}
KITCHEN = {"name": "Line One", "number": "9000000001", "pin": "4321"}


class TickingClock:
    """Each call is one second after the previous one."""

    def __init__(self, start=datetime(2026, 10, 19, 9, 0, 0)):
        self.now = start

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def db(monkeypatch):
    mdb = mongomock.MongoClient().restaurant
    monkeypatch.setattr(database, "db", mdb)
    return mdb


@pytest.fixture
def lifecycle(db, clock):
    return OrderLifecycle(db, clock=clock)


@pytest.fixture
def catalog(db, clock):
    return Catalog(db, clock=clock)


@pytest.fixture
def menu(catalog):
    """A small menu: one category with a burger, fries and a sold-out shake."""
    mains = catalog.create_category(Category(name="Mains", image_url="https://img/mains.png", type="nonveg"))
    burger = catalog.create_menu_item(MenuItem(name="Burger", image_url="https://img/burger.png",
                                               price=150, category_id=mains["id"], description="Double patty"))
    fries = catalog.create_menu_item(MenuItem(name="Fries", image_url="https://img/fries.png",
                                              price=80, category_id=mains["id"]))
    shake = catalog.create_menu_item(MenuItem(name="Shake", image_url="https://img/shake.png",
                                              price=120, category_id=mains["id"], is_available=False))
    return {"category": mains, "burger": burger, "fries": fries, "shake": shake}


@pytest.fixture
def client(db, clock, monkeypatch):
    for key, value in ADMIN.items():
        monkeypatch.setattr(config, f"ADMIN_{key.upper()}", value)
    for key, value in KITCHEN.items():
        monkeypatch.setattr(config, f"KITCHEN_{key.upper()}", value)
    main.app.dependency_overrides[main.get_lifecycle] = lambda: OrderLifecycle(db, clock=clock)
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client):
    resp = client.post("/api/auth", json=ADMIN)
    assert resp.status_code == 200
    return client


@pytest.fixture
def kitchen_client(client):
    resp = client.post("/api/kitchen-auth", json=KITCHEN)
    assert resp.status_code == 200
    return client

"""
Cart / order-draft accumulator.

Table (QR code) carts are mirrored to a per-session storage so a customer
can reload the page and keep their cart; the admin walk-up draft is memory
only and is built fresh for every request.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from schemas import CartItem, OrderItem

logger = logging.getLogger(__name__)

CARTS = "cart"
STORAGE_KEY = "tableCart"


class MongoCartStorage:
    """Keeps one cart document per browser session in the `cart` collection."""

    def __init__(self, db, session_id: str):
        self.db = db
        self.key = f"{STORAGE_KEY}:{session_id}"

    def load(self) -> List[Dict[str, Any]]:
        doc = self.db[CARTS].find_one({"_id": self.key})
        return (doc or {}).get("items") or []

    def save(self, items: List[Dict[str, Any]]) -> None:
        self.db[CARTS].update_one({"_id": self.key}, {"$set": {"items": items}}, upsert=True)

    def clear(self) -> None:
        self.db[CARTS].delete_one({"_id": self.key})


class DraftAccumulator:
    def __init__(self, storage: Optional[MongoCartStorage] = None):
        self.storage = storage
        self.items: List[CartItem] = []
        if storage is not None:
            self._restore()

    def add_item(self, item: Union[CartItem, Dict[str, Any]]) -> None:
        """Add one of `item`, bumping the quantity if the menu item is already in the cart."""
        if not isinstance(item, CartItem):
            item = CartItem.model_validate(item)
        existing = self.get(item.menu_id)
        if existing is not None:
            existing.quantity += 1
        else:
            self.items.append(item.model_copy(update={"quantity": 1}))
        self._save()

    def remove_item(self, menu_id: str) -> None:
        self.items = [i for i in self.items if i.menu_id != menu_id]
        self._save()

    def update_quantity(self, menu_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(menu_id)
            return
        existing = self.get(menu_id)
        if existing is not None:
            existing.quantity = quantity
            self._save()

    def clear(self) -> None:
        self.items = []
        if self.storage is not None:
            self.storage.clear()

    def total_amount(self) -> float:
        return sum(i.price * i.quantity for i in self.items)

    def total_item_count(self) -> int:
        # distinct lines, not units
        return len(self.items)

    def to_order_items(self) -> List[OrderItem]:
        return [
            OrderItem(menu_id=i.menu_id, name=i.name, quantity=i.quantity,
                      price=i.price, special_request=i.special_request)
            for i in self.items
        ]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "items": [i.model_dump() for i in self.items],
            "total_amount": self.total_amount(),
            "total_items": self.total_item_count(),
        }

    def get(self, menu_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.menu_id == menu_id:
                return item
        return None

    def _save(self) -> None:
        if self.storage is not None:
            self.storage.save([i.model_dump() for i in self.items])

    def _restore(self) -> None:
        try:
            self.items = [CartItem.model_validate(raw) for raw in self.storage.load()]
        except PydanticValidationError:
            logger.error("Discarding unreadable cart %s", self.storage.key, exc_info=True)
            self.items = []

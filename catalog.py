"""
Menu and category stores. Orders snapshot name/price from here when an item
goes into a cart and never read the menu again afterwards.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING

from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import ConflictError, NotFoundError, ValidationError
from schemas import MAX_EXTRA_IMAGES, Category, MenuItem

logger = logging.getLogger(__name__)

CATEGORIES = "category"
MENU_ITEMS = "menuitem"

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


class Catalog:
    def __init__(self, db, clock: Callable = utcnow):
        self.db = db
        self.clock = clock

    # ---------------------- Categories ----------------------
    def create_category(self, category: Category) -> Dict[str, Any]:
        if self.db[CATEGORIES].find_one({"name": category.name}):
            raise ConflictError("Category with this name already exists")
        now = self.clock()
        new_id = create_document(self.db, CATEGORIES, {**category.model_dump(), "created_at": now, "updated_at": now})
        logger.info("Category %r created", category.name)
        return self.get_category(new_id)

    def update_category(self, category_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        _id = self._category_id(category_id)
        if updates.get("name"):
            existing = self.db[CATEGORIES].find_one({"name": updates["name"]})
            if existing and existing["_id"] != _id:
                raise ConflictError("Category with this name already exists")
        self.db[CATEGORIES].update_one({"_id": _id}, {"$set": {**updates, "updated_at": self.clock()}})
        return self.get_category(category_id)

    def delete_category(self, category_id: str) -> None:
        _id = self._category_id(category_id)
        self.db[CATEGORIES].delete_one({"_id": _id})
        logger.info("Category %s deleted", category_id)

    def list_categories(self) -> List[Dict[str, Any]]:
        return self._list(CATEGORIES, {}, NEWEST_FIRST)

    def get_category(self, category_id: str) -> Dict[str, Any]:
        _id = to_object_id(category_id)
        doc = self.db[CATEGORIES].find_one({"_id": _id}) if _id is not None else None
        if doc is None:
            raise NotFoundError("Category not found")
        return serialize(doc)

    def get_category_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return serialize(self.db[CATEGORIES].find_one({"name": name}))

    # ---------------------- Menu ----------------------
    def create_menu_item(self, item: MenuItem) -> Dict[str, Any]:
        _check_images(item.image_urls)
        category = self.get_category(item.category_id)
        now = self.clock()
        doc = {**item.model_dump(), "category": category["name"], "created_at": now, "updated_at": now}
        new_id = create_document(self.db, MENU_ITEMS, doc)
        logger.info("Menu item %r added to %s", item.name, category["name"])
        return self.get_menu_item(new_id)

    def update_menu_item(self, menu_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        _id = self._menu_id(menu_id)
        _check_images(updates.get("image_urls"))
        if updates.get("category_id"):
            updates = {**updates, "category": self.get_category(updates["category_id"])["name"]}
        self.db[MENU_ITEMS].update_one({"_id": _id}, {"$set": {**updates, "updated_at": self.clock()}})
        return self.get_menu_item(menu_id)

    def delete_menu_item(self, menu_id: str) -> None:
        self.db[MENU_ITEMS].delete_one({"_id": self._menu_id(menu_id)})

    def toggle_availability(self, menu_id: str) -> Dict[str, Any]:
        item = self.get_menu_item(menu_id)
        self.db[MENU_ITEMS].update_one(
            {"_id": to_object_id(menu_id)},
            {"$set": {"is_available": not item.get("is_available", True), "updated_at": self.clock()}},
        )
        return self.get_menu_item(menu_id)

    def get_menu_item(self, menu_id: str) -> Dict[str, Any]:
        _id = to_object_id(menu_id)
        doc = self.db[MENU_ITEMS].find_one({"_id": _id}) if _id is not None else None
        if doc is None:
            raise NotFoundError("Menu item not found")
        return serialize(doc)

    def list_menu_items(self) -> List[Dict[str, Any]]:
        return self._list(MENU_ITEMS, {}, NEWEST_FIRST)

    def menu_items_by_category(self, category: str) -> List[Dict[str, Any]]:
        return self._list(MENU_ITEMS, {"category": category}, [("_id", ASCENDING)])

    def available_menu_items(self) -> List[Dict[str, Any]]:
        return self._list(MENU_ITEMS, {"is_available": True}, [("_id", ASCENDING)])

    def search_menu_items(self, term: str) -> List[Dict[str, Any]]:
        """Case-insensitive substring match on name, description and category."""
        needle = term.lower()

        def matches(doc):
            return any(needle in (doc.get(field) or "").lower()
                       for field in ("name", "description", "category"))

        return [serialize(d) for d in self.db[MENU_ITEMS].find({}) if matches(d)]

    def menu_category_names(self) -> List[str]:
        return sorted({d["category"] for d in self.db[MENU_ITEMS].find({}) if d.get("category")})

    # ---------------------- Helpers ----------------------
    def _list(self, collection: str, filt: Dict[str, Any], sort: List) -> List[Dict[str, Any]]:
        return [serialize(d) for d in get_documents(self.db, collection, filt, sort=sort)]

    def _category_id(self, category_id: str):
        _id = to_object_id(category_id)
        if _id is None or self.db[CATEGORIES].find_one({"_id": _id}, {"_id": 1}) is None:
            raise NotFoundError("Category not found")
        return _id

    def _menu_id(self, menu_id: str):
        _id = to_object_id(menu_id)
        if _id is None or self.db[MENU_ITEMS].find_one({"_id": _id}, {"_id": 1}) is None:
            raise NotFoundError("Menu item not found")
        return _id


def _check_images(image_urls: Optional[List[str]]) -> None:
    if image_urls and len(image_urls) > MAX_EXTRA_IMAGES:
        raise ValidationError(f"Maximum {MAX_EXTRA_IMAGES} additional images allowed")

"""
Menu snapshot resolver.

Resolves the single CONFIRMED menu version of a restaurant, which is the
version every new order is priced against and embeds as its snapshot.
Also publishes new versions, keeping at most one CONFIRMED per
restaurant.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from core.exceptions import ConditionFailedError, NotFoundError
from core.store import Attr, Store
from core.timeutil import utc_now_iso
from models.menu import MenuItem, MenuStatus, MenuVersion
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

MENUS = "menus"


class MenuService:
    """Reads and publishes menu versions."""

    def __init__(self, store: Store):
        self._store = store

    def get_confirmed_menu(self, restaurant_id: str) -> MenuVersion:
        """
        Fetch the CONFIRMED menu version for a restaurant.

        Raises:
            NotFoundError: If the restaurant has no confirmed menu
        """
        menu = self.find_confirmed_menu(restaurant_id)
        if menu is None:
            raise NotFoundError(
                "Menu not found for this restaurant",
                {"restaurant_id": restaurant_id},
            )
        return menu

    def find_confirmed_menu(self, restaurant_id: str) -> Optional[MenuVersion]:
        # Newest confirmation wins if a publish is mid-way through demoting
        rows = self._store.query(
            MENUS,
            {"restaurantId": restaurant_id, "status": MenuStatus.CONFIRMED.value},
            index="restaurantId-status-index",
            sort_by="confirmedAt",
            descending=True,
            limit=1,
        )
        return MenuVersion.from_dict(rows[0]) if rows else None

    def publish(
        self,
        restaurant_id: str,
        items: List[Dict[str, Any]],
        confirm: bool = False,
    ) -> MenuVersion:
        """
        Store a new DRAFT menu version, optionally confirming it.

        Args:
            restaurant_id: Owning restaurant
            items: Menu items in stored (camelCase) shape, already validated
            confirm: Confirm the new version immediately

        Returns:
            The stored MenuVersion
        """
        stamp = int(time.time() * 1000)
        while True:
            menu = MenuVersion(
                restaurant_id=restaurant_id,
                version=f"v{stamp}",
                items=[MenuItem.from_dict(i) for i in items],
                status=MenuStatus.DRAFT,
                created_at=utc_now_iso(),
            )
            # Versions are immutable once written; never overwrite one
            try:
                self._store.put(MENUS, menu.to_dict(), condition=Attr("version").not_exists())
                break
            except ConditionFailedError:
                stamp += 1
        logger.info(f"Menu {menu.version} stored for restaurant {restaurant_id}")

        if confirm:
            menu = self.confirm(restaurant_id, menu.version)
        return menu

    def confirm(self, restaurant_id: str, version: str) -> MenuVersion:
        """
        Confirm a menu version and demote any other CONFIRMED version.

        The target is confirmed first and the others demoted after, so a
        concurrent reader always finds at least one confirmed version.

        Raises:
            NotFoundError: If the version does not exist
        """
        now = utc_now_iso()
        try:
            row = self._store.update(
                MENUS,
                {"restaurantId": restaurant_id, "version": version},
                {"status": MenuStatus.CONFIRMED.value, "confirmedAt": now},
                condition=Attr("version").exists(),
            )
        except ConditionFailedError:
            raise NotFoundError(
                f"Menu version {version} not found",
                {"restaurant_id": restaurant_id, "version": version},
            )

        previous = self._store.query(
            MENUS,
            {"restaurantId": restaurant_id, "status": MenuStatus.CONFIRMED.value},
            index="restaurantId-status-index",
        )
        for other in previous:
            if other["version"] == version:
                continue
            try:
                self._store.update(
                    MENUS,
                    {"restaurantId": restaurant_id, "version": other["version"]},
                    {"status": MenuStatus.DRAFT.value},
                    condition=Attr("status").eq(MenuStatus.CONFIRMED.value),
                )
                logger.info(f"Menu {other['version']} demoted to DRAFT")
            except ConditionFailedError:
                logger.info(f"Menu {other['version']} already demoted")

        logger.info(f"Menu {version} confirmed for restaurant {restaurant_id}")
        return MenuVersion.from_dict(row)

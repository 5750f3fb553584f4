"""
Menu data models.

A restaurant publishes menu versions. At most one version per restaurant
is CONFIRMED at a time, and that is the version orders are priced
against. Once an order embeds a version as its snapshot, the snapshot is
never refreshed from a later edit.

Stored shape (camelCase keys) is produced by to_dict() and read by
from_dict().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class MenuStatus(Enum):
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"


class OptionType(Enum):
    SIZE = "size"
    ADDON = "addon"
    CHOICE = "choice"


@dataclass(frozen=True)
class OptionChoice:
    """One selectable choice of a menu option, e.g. 'Large' (+2000)."""

    id: str
    name: str
    price_modifier: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "priceModifier": self.price_modifier}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptionChoice":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            price_modifier=data.get("priceModifier", 0.0),
        )


@dataclass(frozen=True)
class MenuOption:
    """An option group on a menu item (size, add-on, or plain choice)."""

    id: str
    name: str
    type: str = "choice"
    required: bool = False
    choices: List[OptionChoice] = field(default_factory=list)

    def find_choice(self, choice_id: str) -> Optional[OptionChoice]:
        return next((c for c in self.choices if c.id == choice_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "choices": [c.to_dict() for c in self.choices],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MenuOption":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            type=data.get("type", "choice"),
            required=data.get("required", False),
            choices=[OptionChoice.from_dict(c) for c in data.get("choices", [])],
        )


@dataclass(frozen=True)
class MenuItem:
    """A menu item with its base price and option groups."""

    id: str
    name: str
    price: float
    description: str = ""
    image_url: Optional[str] = None
    available: bool = True
    options: List[MenuOption] = field(default_factory=list)

    def find_option(self, option_id: str) -> Optional[MenuOption]:
        return next((o for o in self.options if o.id == option_id), None)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "available": self.available,
            "options": [o.to_dict() for o in self.options],
        }
        if self.image_url:
            data["imageUrl"] = self.image_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MenuItem":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            price=data.get("price", 0.0),
            description=data.get("description", ""),
            image_url=data.get("imageUrl"),
            available=data.get("available", True),
            options=[MenuOption.from_dict(o) for o in data.get("options", [])],
        )


@dataclass
class MenuVersion:
    """
    One published version of a restaurant's menu.

    Lifecycle:
        DRAFT -> CONFIRMED (demoting any previous CONFIRMED version to DRAFT)
    """

    restaurant_id: str
    version: str
    items: List[MenuItem]
    status: MenuStatus = MenuStatus.DRAFT
    created_at: str = ""
    confirmed_at: Optional[str] = None

    def find_item(self, item_id: str) -> Optional[MenuItem]:
        return next((i for i in self.items if i.id == item_id), None)

    def snapshot(self) -> Dict[str, Any]:
        """The frozen copy embedded in an order at creation."""
        return {
            "version": self.version,
            "items": [i.to_dict() for i in self.items],
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "restaurantId": self.restaurant_id,
            "version": self.version,
            "items": [i.to_dict() for i in self.items],
            "status": self.status.value,
            "createdAt": self.created_at,
        }
        if self.confirmed_at:
            data["confirmedAt"] = self.confirmed_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MenuVersion":
        return cls(
            restaurant_id=data.get("restaurantId", ""),
            version=data.get("version", ""),
            items=[MenuItem.from_dict(i) for i in data.get("items", [])],
            status=MenuStatus(data.get("status", MenuStatus.DRAFT.value)),
            created_at=data.get("createdAt", ""),
            confirmed_at=data.get("confirmedAt"),
        )

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional


class Availability(Enum):
    """Stock state inferred from a result card or product page"""
    IN_STOCK = "InStock"
    OUT_OF_STOCK = "OutOfStock"
    LIMITED = "Limited"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ProductAttributes:
    """Numeric attributes inferred from the title; None when absent"""
    battery: Optional[int] = None   # mAh
    ram: Optional[float] = None     # GB
    storage: Optional[float] = None  # GB
    brand: Optional[str] = None

    def get(self, key: str) -> Any:
        return getattr(self, key, None)


@dataclass(frozen=True)
class Product:
    """
    Canonical product extracted from a results page.

    Value type: identity is ``link``; a fresh list is produced on every
    extraction and never mutated.
    """
    title: str
    link: str
    price_text: Optional[str] = None
    price_numeric: Optional[float] = None
    image: Optional[str] = None
    rating: Optional[float] = None
    reviews: Optional[int] = None
    attributes: ProductAttributes = field(default_factory=ProductAttributes)
    sponsored: bool = False
    availability: Availability = Availability.UNKNOWN

    @property
    def is_available(self) -> bool:
        return self.availability is not Availability.OUT_OF_STOCK

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["availability"] = self.availability.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        attrs = data.get("attributes") or {}
        availability = data.get("availability") or Availability.UNKNOWN.value
        return cls(
            title=data.get("title", ""),
            link=data.get("link", ""),
            price_text=data.get("price_text"),
            price_numeric=data.get("price_numeric"),
            image=data.get("image"),
            rating=data.get("rating"),
            reviews=data.get("reviews"),
            attributes=ProductAttributes(
                battery=attrs.get("battery"),
                ram=attrs.get("ram"),
                storage=attrs.get("storage"),
                brand=attrs.get("brand"),
            ),
            sponsored=bool(data.get("sponsored", False)),
            availability=Availability(availability),
        )

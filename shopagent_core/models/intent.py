from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Optional, Union

FilterValue = Union[str, int, float]


@dataclass(frozen=True)
class Intent:
    """Structured shopping request, immutable once parsed"""
    product_query: str
    platform_hint: Optional[str] = None
    filters: Dict[str, FilterValue] = field(default_factory=dict)
    sort: Optional[str] = None
    action: str = "buy_now"  # buy_now | add_to_cart
    quantity: int = 1
    delivery_location: Optional[str] = None
    payment_method: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "filters", MappingProxyType(dict(self.filters)))

    @property
    def has_filters(self) -> bool:
        return bool(self.filters)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_query": self.product_query,
            "platform_hint": self.platform_hint,
            "filters": dict(self.filters),
            "sort": self.sort,
            "action": self.action,
            "quantity": self.quantity,
            "delivery_location": self.delivery_location,
            "payment_method": self.payment_method,
        }

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class FilterType(Enum):
    SELECTION = "selection"
    RANGE = "range"


@dataclass(frozen=True)
class FilterElement:
    """One clickable option inside a filter group"""
    text: str
    selector: str
    is_numeric_kind: bool = False
    numeric_value: Optional[float] = None
    is_rating: bool = False
    checked: bool = False


@dataclass
class FilterGroup:
    """
    Filter sidebar group discovered on the current page.

    Stale as soon as anything on the page is clicked; always rediscover.
    """
    label: str
    type: FilterType = FilterType.SELECTION
    elements: List[FilterElement] = field(default_factory=list)
    inputs: Optional[Tuple[str, str]] = None  # (min selector, max selector)
    go_button: Optional[str] = None

    def to_dict(self, max_options: Optional[int] = None) -> Dict[str, Any]:
        options = [e.text for e in self.elements]
        if max_options is not None:
            options = options[:max_options]
        return {"category": self.label, "type": self.type.value, "options": options}

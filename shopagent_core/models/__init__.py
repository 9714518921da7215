"""
Atomized access to data model
"""

from .intent import Intent, FilterValue
from .product import Product, ProductAttributes, Availability
from .filter_group import FilterGroup, FilterElement, FilterType

__all__ = [
    'Intent', 'FilterValue',
    'Product', 'ProductAttributes', 'Availability',
    'FilterGroup', 'FilterElement', 'FilterType',
]

"""
Filter discovery, matching, application and verification.
"""

from .discovery import discover_filters, find_expanders
from .matching import (
    FILTER_SYNONYMS,
    element_matches,
    filter_kind_for_label,
    find_group,
    match_element,
    order_filters,
)
from .url_builder import (
    build_filter_url,
    build_sort_url,
    normalize_sort,
    parse_filter_refinement,
    supports_url_filters,
    validate_filters,
    verify_filters_in_url,
)
from .verifier import FilterVerification, verify_filter_application
from .application import FilterApplier, FilterApplicationResult

__all__ = [
    'discover_filters', 'find_expanders',
    'FILTER_SYNONYMS', 'element_matches', 'filter_kind_for_label', 'find_group', 'match_element', 'order_filters',
    'build_filter_url', 'build_sort_url', 'normalize_sort', 'parse_filter_refinement',
    'supports_url_filters', 'validate_filters', 'verify_filters_in_url',
    'FilterVerification', 'verify_filter_application',
    'FilterApplier', 'FilterApplicationResult',
]

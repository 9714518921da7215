"""
Extraction & normalization of product listings from DOM snapshots.
"""

from .engine import ExtractionEngine
from .classifier import Classification, FilterOutcome, classify, filter_products, is_sponsored, is_out_of_stock
from .attributes import infer_attributes, infer_battery, infer_brand, infer_ram, infer_storage
from .urls import normalize_product_url, unwrap_redirect, decode_repeatedly, DEFAULT_ORIGINS
from .product_matcher import ProductMatcher, rank_results, matches_brand, meets_threshold
from .product_counter import ResultCount, count_products, parse_result_count, read_result_count

__all__ = [
    'ExtractionEngine',
    'Classification', 'FilterOutcome', 'classify', 'filter_products', 'is_sponsored', 'is_out_of_stock',
    'infer_attributes', 'infer_battery', 'infer_brand', 'infer_ram', 'infer_storage',
    'normalize_product_url', 'unwrap_redirect', 'decode_repeatedly', 'DEFAULT_ORIGINS',
    'ProductMatcher', 'rank_results', 'matches_brand', 'meets_threshold',
    'ResultCount', 'count_products', 'parse_result_count', 'read_result_count',
]

"""
DOM Selectors - Per-site selector tables

Selector tables are configuration data injected into the shared extraction and
filter engines; no site behaviour lives here. Every list is ordered: earlier
entries are tried first and the first match wins.

Usage:
    from shopagent_core.dom_selectors import get_platform_selectors

    selectors = get_platform_selectors("flipkart")
    selectors.container   # ordered container candidates
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


# =============================================================================
# SHARED SELECTORS
# =============================================================================

SEARCH_SELECTORS = [
    'input[type="search"]',
    'input[name="q"]',
    'input[name="search"]',
    'input[name="query"]',
    'input[placeholder*="search" i]',
    '#search',
    '.search-input',
    '[data-testid="search-input"]',
]

SEARCH_SUBMIT_SELECTORS = [
    'button[type="submit"]',
    'input[type="submit"]',
    '.search-button',
    'button[aria-label*="search" i]',
]

FILTER_CONTAINER_SELECTORS = [
    '#s-refinements',
    '._1AtVbE',
    '.filter-section',
    '.sidebar-filter',
    '[aria-label*=filter i]',
    '[aria-label*=refinement i]',
    '.refinement-section',
    '#filters',
    '#refinements',
    'facet-filters-form',
    '.facets',
]

FILTER_GROUP_SELECTORS = [
    'div[id^="p_"]',
    '.filter-group',
    'div[class*=filter i]',
    'div[class*=refinement i]',
    '._213e_G',
    '._2hb093',
    'details',
    'section',
    '.a-section.a-spacing-none',
]

FILTER_HEADER_SELECTORS = [
    'span.a-text-bold',
    'h3',
    'h4',
    'h5',
    'summary',
    '._3V_o9G',
    '[class*=header i]',
    'b',
    'strong',
]

FILTER_ITEM_SELECTORS = 'a, input[type=checkbox], input[type=radio], label, button, [role=button]'

FILTER_EXPANDER_SELECTORS = [
    'a.s-expander-text',
    '[aria-expanded=false]',
    '.a-expander-prompt',
    '._6i1qKy',
]

CLEAR_FILTER_SELECTORS = {
    'amazon': [
        '#applied-filters',
        '[data-component-type="s-applied-filters"]',
        '.s-selected-filter',
        '[data-action="s-clear-refinement"]',
        '#s-refinements input[type=checkbox]:checked',
    ],
    'flipkart': ['[class*=clear]', '[class*=applied]', '._3ztNmO'],
    'shopify': ['.active-facets__button', 'facet-remove', '[class*=active-facets]'],
}

# Non-product page chrome; a container mentioning any of these is rejected
GARBAGE_KEYWORDS = [
    'visit the help section',
    'customer service',
    'skip to main content',
    'back to top',
    'need help?',
    'related searches',
    'your browsing history',
    'sign in for the best experience',
]

# Labels that only disqualify a container when its whole text is short
SHORT_GARBAGE_KEYWORDS = ['sponsored', 'advertisement', 'results', 'see all']
SHORT_GARBAGE_LIMIT = 40


# =============================================================================
# PLATFORM TABLES
# =============================================================================

@dataclass(frozen=True)
class PlatformSelectors:
    """Ordered selector lists for one site"""
    platform: str
    container: List[str]
    title: List[str]
    link: List[str]
    price: List[str]
    rating: List[str] = field(default_factory=list)
    reviews: List[str] = field(default_factory=list)
    image: List[str] = field(default_factory=list)
    details: List[str] = field(default_factory=list)
    buy_now: List[str] = field(default_factory=list)
    add_to_cart: List[str] = field(default_factory=list)
    search_input: List[str] = field(default_factory=lambda: list(SEARCH_SELECTORS))
    search_submit: List[str] = field(default_factory=lambda: list(SEARCH_SUBMIT_SELECTORS))
    sort_dropdown: List[str] = field(default_factory=list)
    detail_title: List[str] = field(default_factory=list)
    detail_price: List[str] = field(default_factory=list)
    result_count: List[str] = field(default_factory=list)
    # container attribute -> path template for identifier-based links
    id_attributes: Dict[str, str] = field(default_factory=dict)
    min_text_length: int = 20


AMAZON_SELECTORS = PlatformSelectors(
    platform='amazon',
    container=[
        '[data-component-type="s-search-result"]',
        '.s-result-item[data-asin]:not([data-asin=""])',
        '.s-card-container',
    ],
    title=['h2 a span', 'h2 span', 'h2 a', '.a-size-medium.a-text-normal', '.a-size-base-plus'],
    link=['h2 a[href*="/dp/"]', 'a.a-link-normal.s-no-outline', 'h2 a'],
    price=['.a-price .a-offscreen', '.a-price-whole', '.a-color-price'],
    rating=['.a-icon-alt', '[aria-label*="out of 5 stars"]'],
    reviews=['[aria-label$="ratings"]', '.a-size-base.s-underline-text', 'a[href*="customerReviews"] span'],
    image=['img.s-image', '.s-image', 'img'],
    buy_now=[
        '#buy-now-button',
        '#sc-buy-box-ptc-button',
        '[name="submit.buy-now"]',
        '[data-action="buy-now"]',
        'input[name="submit.buy-now"]',
        '#buyNow_feature_div input',
        '#buy-now-button-announce',
        '.buy-now-button',
        '#buybox input[value*="Buy Now"]',
    ],
    add_to_cart=[
        '#add-to-cart-button',
        'input[name="submit.add-to-cart"]',
        '#addToCart_feature_div input',
        '[data-action="add-to-cart"]',
    ],
    search_input=['#twotabsearchtextbox', 'input[name="field-keywords"]'] + SEARCH_SELECTORS,
    search_submit=['#nav-search-submit-button', 'input[type="submit"][value="Go"]'] + SEARCH_SUBMIT_SELECTORS,
    sort_dropdown=['#s-result-sort-select'],
    detail_title=['#productTitle', '#title', 'h1'],
    detail_price=['.a-price .a-offscreen', '#priceblock_ourprice', '#priceblock_dealprice', '.a-price-whole'],
    result_count=['[data-component-type="s-result-info-bar"] h1 span', '.s-breadcrumb span', '#search .a-section h1 span'],
    id_attributes={'data-asin': '/dp/{id}'},
)

FLIPKART_SELECTORS = PlatformSelectors(
    platform='flipkart',
    container=[
        '[data-id]',
        '._1AtVbE ._13oc-S',
        '._2kHMtA',
        '._4ddWXP',
        '.tUxRFH',
        '.slAVV4',
    ],
    title=['.KzDlHZ', '._4rR01T', '.s1Q9rs', '.IRpwTa', '.wjcEIp', 'a[title]'],
    link=['a.CGtC98', 'a._1fQZEK', 'a.s1Q9rs', 'a.IRpwTa', 'a.wjcEIp', 'a[href*="/p/"]'],
    price=['.Nx9bqj', '._30jeq3', '._1_WHN1'],
    rating=['.XQDdHH', '._3LWZlK'],
    reviews=['.Wphh3N', '._2_R_DZ'],
    image=['img.DByuf4', 'img._396cs4', 'img'],
    details=['ul.G4BRas li', 'ul._1xgFaf li', '.rgWa7D'],
    buy_now=[
        'button._2KpZ6l._2U9uOA._3v1-ww',
        'button.QqFHMw.vslbG\\+._3Yl67G._7Pd1Fp',
        'button:-soup-contains("Buy Now")',
        'button:-soup-contains("BUY NOW")',
    ],
    add_to_cart=[
        'button._2KpZ6l._2U9uOA.ihZ75k._3AWRsL',
        'button:-soup-contains("Add to cart")',
        'button:-soup-contains("ADD TO CART")',
    ],
    search_input=['input[name="q"]', 'input[title*="Search" i]'] + SEARCH_SELECTORS,
    search_submit=['button[type="submit"]'] + SEARCH_SUBMIT_SELECTORS,
    detail_title=['.VU-ZEz', '.B_NuCI', 'h1'],
    detail_price=['.Nx9bqj', '._30jeq3', '._16Jk6d'],
    result_count=['.BUOuZu span', '._10Ermr'],
    id_attributes={'data-id': '/product/p/itm?pid={id}'},
)

SHOPIFY_SELECTORS = PlatformSelectors(
    platform='shopify',
    container=[
        '.product-card-wrapper',
        '.card-wrapper',
        '.grid__item .card',
        '.product-item',
        '.productgrid--item',
        'li.grid__item',
    ],
    title=['.card__heading a', '.card__heading', '.product-item__title', '.product-card__title', 'h3'],
    link=['a.full-unstyled-link', 'a[href*="/products/"]'],
    price=['.price-item--sale', '.price-item--regular', '.price', '.money'],
    rating=['.rating-text', '[class*=rating]'],
    reviews=['.rating-count'],
    image=['.card__media img', 'img'],
    buy_now=[
        '.shopify-payment-button__button',
        'button[name="checkout"]',
        '[data-testid="Checkout-button"]',
    ],
    add_to_cart=[
        'button[name="add"]',
        'form[action*="/cart/add"] button[type="submit"]',
        '.product-form__submit',
    ],
    search_input=['input[name="q"]', 'input[type="search"]'] + SEARCH_SELECTORS,
    detail_title=['.product__title h1', 'h1.product-single__title', 'h1'],
    detail_price=['.price-item--sale', '.price-item--regular', '.price .money', '.price'],
    result_count=['#ProductCountDesktop', '.product-count__text'],
    id_attributes={'data-product-handle': '/products/{id}'},
)

GENERIC_SELECTORS = PlatformSelectors(
    platform='generic',
    container=[
        '[itemtype*="schema.org/Product"]',
        '[data-product-id]',
        '.product',
        '.product-card',
        'article',
        'li[class*=product]',
    ],
    title=['[itemprop=name]', 'h2', 'h3', '[class*=title]', '[class*=name]'],
    link=['a[itemprop=url]', 'a[class*=product]'],
    price=['[itemprop=price]', '[class*=price]'],
    rating=['[itemprop=ratingValue]', '[class*=rating]'],
    reviews=['[itemprop=reviewCount]'],
    image=['img'],
    buy_now=['button:-soup-contains("Buy now")', '[class*=buy-now]'],
    add_to_cart=['button:-soup-contains("Add to cart")', '[class*=add-to-cart]', 'button[name="add"]'],
    detail_title=['h1'],
    detail_price=['[itemprop=price]', '[class*=price]'],
    id_attributes={'data-product-id': '/product/{id}'},
)

PLATFORM_SELECTORS: Dict[str, PlatformSelectors] = {
    'amazon': AMAZON_SELECTORS,
    'flipkart': FLIPKART_SELECTORS,
    'shopify': SHOPIFY_SELECTORS,
    'generic': GENERIC_SELECTORS,
}


def get_platform_selectors(platform: Optional[str]) -> PlatformSelectors:
    """Selector table for a platform key, generic table when unknown."""
    return PLATFORM_SELECTORS.get((platform or '').lower(), GENERIC_SELECTORS)

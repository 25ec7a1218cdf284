import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name, default):
    raw = os.getenv(name, default)
    values = [item.strip() for item in str(raw).split(",") if item.strip()]
    if not values:
        return default
    return values[0] if len(values) == 1 else values


BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")
DB_PATH = os.getenv("VALUEFINDER_DB_PATH", os.path.join(DATA_DIR, "valuefinder.db"))
SCHEMA_PATH = os.path.join(DATA_DIR, "schema.sql")
PRODUCTS_SEED_PATH = os.path.join(DATA_DIR, "products.json")
CATEGORIES_SEED_PATH = os.path.join(DATA_DIR, "categories.json")
GUIDES_SEED_PATH = os.path.join(DATA_DIR, "guides.json")

SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-key-change-me")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

SITE_NAME = "ValueFinder Hub"
BASE_URL = os.getenv("VALUEFINDER_BASE_URL", "https://valuefinderhub.com").strip().rstrip("/") or "https://valuefinderhub.com"
CURRENCY_SYMBOL = "$"
CURRENCY_CODE = "USD"
MAX_COMPARE_ITEMS = 4
SEARCH_HISTORY_LIMIT = 10
SUGGESTION_LIMIT = 5
REDIRECT_DELAY_SECONDS = 2
DEFAULT_DESCRIPTION = "Unbiased product comparisons and deals from trusted retailers."
DEFAULT_OG_IMAGE = f"{BASE_URL}/images/og-images/default-og.jpg"
TWITTER_HANDLE = "@ValueFinderHub"
CONTACT_EMAIL = "contact@valuefinderhub.com"
AFFILIATE_DISCLOSURE = (
    "As an Amazon Associate and affiliate of other retailers, we earn from qualifying purchases."
)

AFFILIATE_NETWORKS = {
    "amazon": {
        "name": "Amazon",
        "base_url": "https://www.amazon.com/dp/",
        "tag_param": "tag",
        "tag": _env_list("AMAZON_TAG", "valuefinderhub-20"),
        "cookie_hours": 24,
    },
    "walmart": {
        "name": "Walmart",
        "base_url": "https://www.walmart.com/ip/",
        "tag_param": "affiliate",
        "tag": _env_list("WALMART_TRACKING_ID", "valuefinderhub"),
        "cookie_hours": 7 * 24,
    },
    "target": {
        "name": "Target",
        "base_url": "https://www.target.com/p/",
        "tag_param": "affiliate",
        "tag": _env_list("TARGET_AFFILIATE_ID", "valuefinderhub"),
        "cookie_hours": 7 * 24,
    },
    "bestbuy": {
        "name": "Best Buy",
        "base_url": "https://www.bestbuy.com/site/",
        "tag_param": "affiliate",
        "tag": _env_list("BESTBUY_AFFILIATE_ID", "valuefinderhub"),
        "cookie_hours": 7 * 24,
    },
    "ebay": {
        "name": "eBay",
        "base_url": "https://www.ebay.com/itm/",
        "tag_param": "affiliate",
        "tag": _env_list("EBAY_AFFILIATE_ID", "valuefinderhub"),
        "cookie_hours": 24,
    },
}

AFFILIATE_ROTATION = os.getenv("AFFILIATE_ROTATION", "random").strip().lower()
if AFFILIATE_ROTATION not in {"random", "round-robin"}:
    AFFILIATE_ROTATION = "random"

MAIN_PAGES = [
    "products",
    "blog",
    "buying-guides",
    "about",
    "contact",
    "how-it-works",
    "affiliate-disclosure",
    "privacy-policy",
    "terms",
]

RELATED_CATEGORIES = {
    "electronics": ["home-kitchen", "office-supplies"],
    "home-kitchen": ["electronics", "tools"],
    "health-fitness": ["sports", "fashion"],
    "fashion": ["beauty", "health-fitness"],
    "beauty": ["fashion", "health-fitness"],
    "automotive": ["tools", "sports"],
}

SORT_LABELS = {
    "relevance": "Featured",
    "price-low": "Price: Low to High",
    "price-high": "Price: High to Low",
    "rating": "Top Rated",
    "popularity": "Most Popular",
    "newest": "Newest",
}
PER_PAGE_OPTIONS = [12, 24, 48]
DEFAULT_PER_PAGE = 12

FLASK_DEBUG = _env_flag("FLASK_DEBUG", "1")
FLASK_RELOAD = _env_flag("FLASK_RELOAD", "1")
FLASK_HOST = os.getenv("FLASK_HOST", "127.0.0.1").strip() or "127.0.0.1"
try:
    PORT = int(os.getenv("PORT", "5000").strip())
except ValueError:
    PORT = 5000

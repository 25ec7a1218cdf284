import re
from datetime import datetime

import settings


def _positive_prices(product):
    prices = []
    for retailer in product.get("retailers") or []:
        try:
            price = float(retailer.get("price") or 0)
        except (TypeError, ValueError):
            continue
        if price > 0:
            prices.append(price)
    return prices


def best_price(product):
    prices = _positive_prices(product)
    return min(prices) if prices else 0


def highest_price(product):
    prices = _positive_prices(product)
    return max(prices) if prices else 0


def best_retailer(retailers):
    best = None
    for retailer in retailers or []:
        if best is None or (retailer.get("price") or 0) < (best.get("price") or 0):
            best = retailer
    return best


def _retailer_key(name):
    return str(name or "").strip().lower().replace(" ", "")


def find_retailer(product, retailer_name):
    wanted = _retailer_key(retailer_name)
    for retailer in product.get("retailers") or []:
        if _retailer_key(retailer.get("name")) == wanted:
            return retailer
    return None


def retailer_price(product, retailer_name):
    wanted = _retailer_key(retailer_name)
    for retailer in product.get("retailers") or []:
        if _retailer_key(retailer.get("name")) == wanted and (retailer.get("price") or 0) > 0:
            return float(retailer["price"])
    return best_price(product)


def original_price(product):
    retailers = product.get("retailers") or []
    if retailers and retailers[0].get("original_price"):
        return float(retailers[0]["original_price"])
    return best_price(product)


def products_by_category(products, category_id, limit=None):
    filtered = [product for product in products if product.get("category") == category_id]
    if limit:
        filtered = filtered[:limit]
    return filtered


def trending_products(products, limit=8):
    return sorted(products, key=lambda item: item.get("views") or 0, reverse=True)[:limit]


def _parse_date(value):
    if not value:
        return datetime.min
    text = str(value).strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return datetime.min
    return parsed.replace(tzinfo=None)


def recently_reviewed(products, limit=4):
    return sorted(
        products,
        key=lambda item: _parse_date(item.get("review_date") or item.get("created_at")),
        reverse=True,
    )[:limit]


def product_search_text(product):
    parts = [
        product.get("name") or "",
        product.get("brand") or "",
        product.get("category") or "",
        product.get("description") or "",
    ]
    parts.extend(product.get("features") or [])
    return " ".join(str(part) for part in parts).lower()


def query_terms(query):
    return [term for term in str(query or "").lower().split() if term]


def search_products(products, query, category=None):
    terms = query_terms(query)
    results = []
    for product in products:
        if category and product.get("category") != category:
            continue
        haystack = product_search_text(product)
        if all(term in haystack for term in terms):
            results.append(product)
    return results


def matches_filters(product, filters):
    if filters.get("category") and product.get("category") != filters["category"]:
        return False

    price = best_price(product)
    if filters.get("min_price") and price < filters["min_price"]:
        return False
    if filters.get("max_price") and price > filters["max_price"]:
        return False

    if filters.get("min_rating") and (product.get("rating") or 0) < filters["min_rating"]:
        return False
    if filters.get("brands") and product.get("brand") not in filters["brands"]:
        return False

    if filters.get("retailers"):
        wanted = {str(name).lower() for name in filters["retailers"]}
        names = {str(retailer.get("name", "")).lower() for retailer in product.get("retailers") or []}
        if not wanted & names:
            return False
    return True


def filter_products(products, filters):
    return [product for product in products if matches_filters(product, filters)]


def sort_products(products, sort_key):
    if sort_key == "price-low":
        return sorted(products, key=best_price)
    if sort_key == "price-high":
        return sorted(products, key=best_price, reverse=True)
    if sort_key == "rating":
        return sorted(products, key=lambda item: item.get("rating") or 0, reverse=True)
    if sort_key == "popularity":
        return sorted(products, key=lambda item: item.get("views") or 0, reverse=True)
    if sort_key == "newest":
        return sorted(products, key=lambda item: _parse_date(item.get("created_at")), reverse=True)
    return list(products)


def all_brands(products, category=None):
    if category:
        products = products_by_category(products, category)
    return sorted({product.get("brand") for product in products if product.get("brand")})


def all_retailers(products):
    names = set()
    for product in products:
        for retailer in product.get("retailers") or []:
            if retailer.get("name"):
                names.add(retailer["name"])
    return sorted(names)


def price_range(products):
    prices = [best_price(product) for product in products]
    prices = [price for price in prices if price > 0]
    if not prices:
        return 0, 0
    return min(prices), max(prices)


def similar_products(products, product_id, limit=4):
    product = next((item for item in products if item.get("id") == product_id), None)
    if not product:
        return []

    def score(item):
        value = 0
        if item.get("category") == product.get("category"):
            value += 2
        if item.get("brand") == product.get("brand"):
            value += 1
        return value

    candidates = [
        item
        for item in products
        if item.get("id") != product_id
        and (item.get("category") == product.get("category") or item.get("brand") == product.get("brand"))
    ]
    return sorted(candidates, key=score, reverse=True)[:limit]


def related_categories(categories, category_id):
    if not any(category.get("id") == category_id for category in categories):
        return []
    related_ids = settings.RELATED_CATEGORIES.get(category_id, [])
    return [category for category in categories if category.get("id") in related_ids]


def product_slug(product):
    slug = str(product.get("name") or "").lower()
    slug = re.sub(r"[^\w\s]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    return slug[:50]


def product_path(product):
    return f"/product/{product_slug(product)}-{product['id']}.html"


def format_currency(amount):
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        value = 0.0
    return f"{settings.CURRENCY_SYMBOL}{value:.2f}"


def calculate_savings(original, sale):
    if not original or not sale:
        return None
    amount = original - sale
    return {"amount": amount, "percentage": int(round(amount / original * 100))}


def star_rating(rating):
    value = max(0.0, min(5.0, float(rating or 0)))
    full = int(value)
    half = 1 if value - full >= 0.5 else 0
    return full, half, 5 - full - half

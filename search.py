import re

from markupsafe import Markup, escape

import catalog
import settings
from storage import utc_now_iso

HISTORY_SESSION_KEY = "search_history"
TYPE_ORDER = {"product": 0, "category": 1, "guide": 2}


def build_search_index(products, categories, guides):
    index = []
    for product in products:
        index.append(
            {
                "id": product["id"],
                "type": "product",
                "title": product.get("name") or "",
                "description": product.get("description") or "",
                "category": product.get("category") or "",
                "brand": product.get("brand") or "",
                "search_text": catalog.product_search_text(product),
            }
        )
    for category in categories:
        index.append(
            {
                "id": category["id"],
                "type": "category",
                "title": category.get("name") or "",
                "description": category.get("description") or "",
                "category": "",
                "brand": "",
                "search_text": f"{category.get('name') or ''} {category.get('description') or ''}".lower(),
            }
        )
    for guide in guides:
        index.append(
            {
                "id": guide["id"],
                "type": "guide",
                "title": guide.get("title") or "",
                "description": guide.get("description") or "",
                "category": guide.get("category") or "",
                "brand": "",
                "search_text": (
                    f"{guide.get('title') or ''} {guide.get('description') or ''} {guide.get('category') or ''}"
                ).lower(),
            }
        )
    return index


def calculate_relevance(item, query):
    relevance = 0
    title = (item.get("title") or "").lower()
    description = (item.get("description") or "").lower()
    category = (item.get("category") or "").lower()
    brand = (item.get("brand") or "").lower()
    for term in catalog.query_terms(query):
        if term in title:
            relevance += 10
        if term in description:
            relevance += 3
        if term in category:
            relevance += 5
        if term in brand:
            relevance += 4
    return relevance


def search(index, query, limit=None):
    terms = catalog.query_terms(query)
    if not index or not terms:
        return []

    results = []
    for item in index:
        if all(term in item["search_text"] for term in terms):
            results.append({**item, "relevance": calculate_relevance(item, query)})

    results.sort(key=lambda item: (-item["relevance"], TYPE_ORDER.get(item["type"], 3)))
    return results[:limit] if limit else results


def group_results(results):
    grouped = {"product": [], "category": [], "guide": []}
    for item in results:
        grouped.setdefault(item["type"], []).append(item)
    return grouped


def highlight_text(text, query):
    if not text:
        return Markup("")
    terms = sorted({term for term in catalog.query_terms(query) if len(term) >= 2}, key=len, reverse=True)
    if not terms:
        return escape(text)

    pattern = "(" + "|".join(re.escape(term) for term in terms) + ")"
    pieces = []
    for position, chunk in enumerate(re.split(pattern, str(text), flags=re.I)):
        if position % 2:
            pieces.append(Markup("<mark>%s</mark>") % chunk)
        else:
            pieces.append(escape(chunk))
    return Markup("").join(pieces)


def save_search_history(session, query):
    query = str(query or "").strip()
    if not query:
        return
    history = list(session.get(HISTORY_SESSION_KEY) or [])
    history.insert(0, {"query": query, "timestamp": utc_now_iso()})
    session[HISTORY_SESSION_KEY] = history[: settings.SEARCH_HISTORY_LIMIT]


def search_history(session):
    return list(session.get(HISTORY_SESSION_KEY) or [])


def clear_search_history(session):
    session.pop(HISTORY_SESSION_KEY, None)


def advanced_search(products, filters):
    results = catalog.filter_products(
        products,
        {
            "category": filters.get("category"),
            "min_price": filters.get("min_price"),
            "max_price": filters.get("max_price"),
            "min_rating": filters.get("min_rating"),
            "brands": filters.get("brands"),
            "retailers": filters.get("retailers"),
        },
    )
    if filters.get("query"):
        results = catalog.search_products(results, filters["query"])
    if filters.get("sort"):
        results = catalog.sort_products(results, filters["sort"])
    return results

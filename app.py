from functools import wraps
from math import ceil
from urllib.parse import urlencode

from flask import (
    Flask,
    Response,
    abort,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

import affiliate
import catalog
import comparison
import search
import seo
import settings
import sitemap
import storage
from log import logger, setup_logger

setup_logger()

app = Flask(__name__)
app.config["SECRET_KEY"] = settings.SECRET_KEY

STATIC_PAGES = {
    "about": {
        "title": "About ValueFinder Hub",
        "paragraphs": [
            "ValueFinder Hub compares prices across trusted retailers so you can find the best deal in seconds.",
            "We track offers from Amazon, Walmart, Target, Best Buy and eBay and keep our listings up to date.",
        ],
    },
    "contact": {
        "title": "Contact Us",
        "paragraphs": [f"Questions, corrections or partnership requests: {settings.CONTACT_EMAIL}."],
    },
    "how-it-works": {
        "title": "How It Works",
        "paragraphs": [
            "Browse or search the catalog, add up to four products to a side-by-side comparison, "
            "then follow a retailer link to complete your purchase.",
            "Prices shown are the lowest in-stock offer we know about. Retailer prices can change at any time.",
        ],
    },
    "affiliate-disclosure": {
        "title": "Affiliate Disclosure",
        "paragraphs": [
            "ValueFinder Hub participates in various affiliate marketing programs. This means we may earn "
            "commissions on purchases made through our links to retailer sites.",
            "These commissions come at no additional cost to you and help support our website.",
            "Our affiliate relationships do not influence our product recommendations. We maintain editorial "
            "independence and provide unbiased comparisons.",
        ],
    },
    "privacy-policy": {
        "title": "Privacy Policy",
        "paragraphs": [
            "We store your cart, comparison list and recent searches in a session cookie. "
            "Outbound retailer clicks are recorded with a click identifier for affiliate attribution.",
        ],
    },
    "terms": {
        "title": "Terms of Use",
        "paragraphs": ["Product information is provided as is. Always confirm price and availability with the retailer."],
    },
}


def _to_int(value):
    if value in (None, ""):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _to_float(value):
    if value in (None, ""):
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


def _unique(items):
    seen = set()
    ordered = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        ordered.append(item)
    return ordered


def _normalize_choices(values, allowed):
    lookup = {item.lower(): item for item in allowed}
    normalized = []
    for value in values:
        match = lookup.get(str(value).strip().lower())
        if match:
            normalized.append(match)
    return _unique(normalized)


def _parse_listing_filters(args, catalog_items, category=None):
    min_price = _to_float(args.get("min_price"))
    max_price = _to_float(args.get("max_price"))
    if min_price is not None and min_price < 0:
        min_price = None
    if max_price is not None and max_price < 0:
        max_price = None
    if min_price is not None and max_price is not None and min_price > max_price:
        min_price, max_price = max_price, min_price

    min_rating = _to_float(args.get("min_rating"))
    if min_rating is not None and not 0 < min_rating <= 5:
        min_rating = None

    sort = str(args.get("sort", "relevance")).strip().lower()
    if sort not in settings.SORT_LABELS:
        sort = "relevance"

    per_page = _to_int(args.get("per_page")) or settings.DEFAULT_PER_PAGE
    if per_page not in settings.PER_PAGE_OPTIONS:
        per_page = settings.DEFAULT_PER_PAGE

    page = _to_int(args.get("page")) or 1
    if page < 1:
        page = 1

    return {
        "q": str(args.get("q", "")).strip(),
        "category": category,
        "min_price": min_price,
        "max_price": max_price,
        "min_rating": min_rating,
        "brands": _normalize_choices(args.getlist("brand"), catalog.all_brands(catalog_items, category)),
        "retailers": _normalize_choices(args.getlist("retailer"), catalog.all_retailers(catalog_items)),
        "sort": sort,
        "page": page,
        "per_page": per_page,
    }


def _listing_query_map(filters, include_page=True):
    params = {}
    if filters["q"]:
        params["q"] = [filters["q"]]
    if filters["min_price"] is not None:
        params["min_price"] = [f"{filters['min_price']:g}"]
    if filters["max_price"] is not None:
        params["max_price"] = [f"{filters['max_price']:g}"]
    if filters["min_rating"] is not None:
        params["min_rating"] = [f"{filters['min_rating']:g}"]
    if filters["brands"]:
        params["brand"] = list(filters["brands"])
    if filters["retailers"]:
        params["retailer"] = list(filters["retailers"])
    if filters["sort"] != "relevance":
        params["sort"] = [filters["sort"]]
    if filters["per_page"] != settings.DEFAULT_PER_PAGE:
        params["per_page"] = [str(filters["per_page"])]
    if include_page and filters["page"] > 1:
        params["page"] = [str(filters["page"])]
    return params


def _listing_url(params, category=None):
    base = url_for("category_page", category_id=category) if category else url_for("products")
    flat_params = []
    for key, values in params.items():
        for value in values:
            flat_params.append((key, value))
    if not flat_params:
        return base
    return f"{base}?{urlencode(flat_params)}"


def _remove_param(params, key, value=None):
    updated = {param_key: list(param_values) for param_key, param_values in params.items()}
    updated.pop("page", None)

    if value is None:
        updated.pop(key, None)
        return updated

    if key not in updated:
        return updated
    updated[key] = [entry for entry in updated[key] if entry != str(value)]
    if not updated[key]:
        updated.pop(key)
    return updated


def _build_active_chips(filters, query_map, category=None):
    chips = []

    def add_chip(label, key, value=None):
        chips.append(
            {
                "label": label,
                "remove_url": _listing_url(_remove_param(query_map, key, value), category),
            }
        )

    if filters["q"]:
        add_chip(f'Search: "{filters["q"]}"', "q")
    if filters["min_price"] is not None:
        add_chip(f"Min: {catalog.format_currency(filters['min_price'])}", "min_price")
    if filters["max_price"] is not None:
        add_chip(f"Max: {catalog.format_currency(filters['max_price'])}", "max_price")
    if filters["min_rating"] is not None:
        add_chip(f"Rating: {filters['min_rating']:g}+", "min_rating")
    for brand in filters["brands"]:
        add_chip(f"Brand: {brand}", "brand", brand)
    for retailer in filters["retailers"]:
        add_chip(f"Retailer: {retailer}", "retailer", retailer)
    if filters["sort"] != "relevance":
        add_chip(f"Sort: {settings.SORT_LABELS[filters['sort']]}", "sort")
    return chips


def _render_product_listing(category=None):
    catalog_items = storage.fetch_products()
    filters = _parse_listing_filters(request.args, catalog_items, category["id"] if category else None)

    matched = search.advanced_search(
        catalog_items,
        {
            "category": filters["category"],
            "min_price": filters["min_price"],
            "max_price": filters["max_price"],
            "min_rating": filters["min_rating"],
            "brands": filters["brands"],
            "retailers": filters["retailers"],
            "query": filters["q"],
            "sort": filters["sort"],
        },
    )

    total_results = len(matched)
    total_pages = max(1, ceil(total_results / filters["per_page"])) if total_results else 1
    if filters["page"] > total_pages:
        filters["page"] = total_pages
    start_index = (filters["page"] - 1) * filters["per_page"]
    visible = matched[start_index : start_index + filters["per_page"]]

    category_id = filters["category"]
    query_map = _listing_query_map(filters, include_page=False)

    prev_url = None
    if filters["page"] > 1:
        prev_params = {key: list(values) for key, values in query_map.items()}
        if filters["page"] - 1 > 1:
            prev_params["page"] = [str(filters["page"] - 1)]
        prev_url = _listing_url(prev_params, category_id)

    next_url = None
    if filters["page"] < total_pages:
        next_params = {key: list(values) for key, values in query_map.items()}
        next_params["page"] = [str(filters["page"] + 1)]
        next_url = _listing_url(next_params, category_id)

    scoped = catalog.products_by_category(catalog_items, category_id) if category_id else catalog_items
    low, high = catalog.price_range(scoped)
    options = {
        "brands": catalog.all_brands(catalog_items, category_id),
        "retailers": catalog.all_retailers(catalog_items),
        "sort_labels": settings.SORT_LABELS,
        "per_page_options": settings.PER_PAGE_OPTIONS,
        "price_min": low,
        "price_max": high,
    }

    if category:
        page_title = category["name"]
        categories = storage.fetch_categories()
        related = catalog.related_categories(categories, category["id"])
        meta = seo.generate_meta_tags(
            {
                "title": f"{category['name']} - Compare Prices | {settings.SITE_NAME}",
                "description": category.get("description") or None,
                "url": seo.category_url(category["id"]),
                "structured_data": [
                    seo.category_schema(category),
                    seo.breadcrumb_schema(
                        [
                            {"name": "Home", "url": f"{settings.BASE_URL}/"},
                            {"name": category["name"], "url": seo.category_url(category["id"])},
                        ]
                    ),
                    seo.product_list_schema(visible, page_title),
                ],
            }
        )
    else:
        page_title = "All Products"
        related = []
        meta = seo.generate_meta_tags(
            {
                "title": f"Compare Products | {settings.SITE_NAME}",
                "url": seo.absolute_url("/products"),
                "structured_data": [seo.product_list_schema(visible, page_title)],
            }
        )

    return render_template(
        "products.html",
        products=visible,
        filters=filters,
        category=category,
        related_categories=related,
        page_title=page_title,
        options=options,
        active_chips=_build_active_chips(filters, query_map, category_id),
        counts={
            "total": total_results,
            "shown": len(visible),
            "from": start_index + 1 if total_results else 0,
            "to": start_index + len(visible),
        },
        pagination={
            "page": filters["page"],
            "total_pages": total_pages,
            "has_prev": filters["page"] > 1,
            "has_next": filters["page"] < total_pages,
            "prev_url": prev_url,
            "next_url": next_url,
        },
        meta=meta,
    )


def _parse_compare_ids(args):
    raw_ids = []
    for raw_value in args.getlist("ids"):
        raw_ids.extend(str(raw_value).split(","))

    parsed = []
    for value in raw_ids:
        parsed_value = _to_int(value.strip())
        if parsed_value is None or parsed_value in parsed:
            continue
        parsed.append(parsed_value)
    return parsed[: settings.MAX_COMPARE_ITEMS]


def _redirect_back(fallback_endpoint="products"):
    target = request.form.get("next") or request.args.get("next") or ""
    if target.startswith("/") and not target.startswith("//"):
        return redirect(target)
    return redirect(url_for(fallback_endpoint))


def _wants_json():
    return request.accept_mimetypes.best == "application/json" or request.is_json


def _split_lines(value):
    return [line.strip(" -\t") for line in str(value or "").splitlines() if line.strip(" -\t")]


def _parse_specifications(value):
    specifications = {}
    for line in _split_lines(value):
        key, sep, spec_value = line.partition(":")
        if sep and key.strip():
            specifications[key.strip()] = spec_value.strip()
    return specifications


def _parse_product_form(form, category_ids):
    errors = []
    name = form.get("name", "").strip()
    brand = form.get("brand", "").strip()
    category = form.get("category", "").strip()

    if len(name) < 2:
        errors.append("Name must be at least 2 characters.")
    if not brand:
        errors.append("Brand is required.")
    if category not in category_ids:
        errors.append("Please choose a valid category.")

    rating = _to_float(form.get("rating"))
    if rating is None:
        rating = 4.0
    if rating < 0 or rating > 5:
        errors.append("Rating must be between 0 and 5.")

    retailers = []
    index = 0
    while f"retailers[{index}][name]" in form:
        retailer_name = form.get(f"retailers[{index}][name]", "").strip()
        affiliate_url = form.get(f"retailers[{index}][affiliate_url]", "").strip()
        price = _to_float(form.get(f"retailers[{index}][price]")) or 0
        if retailer_name and affiliate_url:
            if price < 0:
                errors.append(f"Price for {retailer_name} cannot be negative.")
            if not affiliate.check_link_health(affiliate_url)["valid"]:
                errors.append(f"Affiliate URL for {retailer_name} is not a valid link.")
            retailers.append(
                {
                    "name": retailer_name,
                    "price": price,
                    "original_price": _to_float(form.get(f"retailers[{index}][original_price]")),
                    "affiliate_url": affiliate_url,
                    "in_stock": form.get(f"retailers[{index}][in_stock]") == "on",
                }
            )
        index += 1

    additional_images = [url.strip() for url in form.get("additional_images", "").split(",") if url.strip()]
    product = {
        "name": name,
        "brand": brand,
        "category": category,
        "subcategory": form.get("subcategory", "").strip(),
        "description": form.get("description", "").strip(),
        "image": form.get("image", "").strip(),
        "additional_images": additional_images,
        "rating": rating,
        "is_best_seller": form.get("is_best_seller") == "on",
        "is_new": form.get("is_new") == "on",
        "features": _split_lines(form.get("features")),
        "specifications": _parse_specifications(form.get("specifications")),
        "retailers": retailers,
    }
    return product, errors


def _admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get("is_admin"):
            return redirect(url_for("admin_login", next=request.path))
        return view(*args, **kwargs)

    return wrapped


storage.init_database()


@app.context_processor
def _inject_globals():
    return {
        "site_name": settings.SITE_NAME,
        "affiliate_disclosure": settings.AFFILIATE_DISCLOSURE,
        "comparison_count": comparison.comparison_count(session),
        "compare_ids": comparison.comparison_items(session),
        "cart_count": comparison.cart_count(session),
        "max_compare_items": settings.MAX_COMPARE_ITEMS,
        "format_currency": catalog.format_currency,
        "best_price": catalog.best_price,
        "star_rating": catalog.star_rating,
        "calculate_savings": catalog.calculate_savings,
        "original_price": catalog.original_price,
        "json_ld": seo.json_ld,
        "website_schema": seo.website_schema(),
    }


@app.errorhandler(404)
def not_found(error):
    if request.path.startswith("/api/"):
        return jsonify({"error": "Not found."}), 404
    meta = seo.generate_meta_tags({"title": f"Page Not Found | {settings.SITE_NAME}", "robots": "noindex, follow"})
    return render_template("404.html", meta=meta), 404


@app.route("/")
def home():
    products = storage.fetch_products()
    return render_template(
        "index.html",
        trending=catalog.trending_products(products, 8),
        recently_reviewed=catalog.recently_reviewed(products, 4),
        categories=storage.fetch_categories(),
        meta=seo.generate_meta_tags({"url": f"{settings.BASE_URL}/"}),
    )


@app.route("/products")
def products():
    return _render_product_listing()


@app.route("/category/<category_id>")
def category_page(category_id):
    category = storage.fetch_category(category_id)
    if not category:
        abort(404)
    return _render_product_listing(category=category)


@app.route("/product/<int:product_id>")
def product_detail(product_id):
    product = storage.fetch_product(product_id)
    if not product:
        abort(404)

    storage.increment_views(product_id)
    category = storage.fetch_category(product["category"])
    faqs = seo.product_faqs(product)
    meta = seo.product_meta_tags(product)
    meta["structured_data"] = [
        seo.product_schema(product),
        seo.breadcrumb_schema(seo.product_breadcrumbs(product, category)),
        seo.faq_schema(faqs),
    ]
    similar = catalog.similar_products(storage.fetch_products(), product_id, limit=4)
    return render_template(
        "product_detail.html",
        product=product,
        category=category,
        similar=similar,
        faqs=faqs,
        networks=settings.AFFILIATE_NETWORKS,
        meta=meta,
    )


@app.route("/product/<slug>-<int:product_id>.html")
def product_slug_redirect(slug, product_id):
    if not storage.fetch_product(product_id):
        abort(404)
    return redirect(url_for("product_detail", product_id=product_id), code=301)


@app.route("/search")
def search_page():
    query = request.args.get("q", "").strip()
    results = []
    grouped = {"product": [], "category": [], "guide": []}
    products_by_id = {}
    if query:
        search.save_search_history(session, query)
        catalog_items = storage.fetch_products()
        products_by_id = {item["id"]: item for item in catalog_items}
        index = search.build_search_index(catalog_items, storage.fetch_categories(), storage.fetch_guides())
        results = search.search(index, query)
        grouped = search.group_results(results)
        logger.debug(f"Search {query!r} returned {len(results)} results")

    return render_template(
        "search.html",
        query=query,
        results=results,
        grouped=grouped,
        products_by_id=products_by_id,
        highlight=search.highlight_text,
        history=search.search_history(session),
        categories=storage.fetch_categories() if not results else [],
        meta=seo.generate_meta_tags(
            {
                "title": f'Search results for "{query}" | {settings.SITE_NAME}' if query else None,
                "url": seo.absolute_url("/search"),
                "robots": "noindex, follow",
            }
        ),
    )


@app.route("/search/history/clear", methods=["POST"])
def clear_search_history():
    search.clear_search_history(session)
    flash("Search history cleared.", "info")
    return redirect(url_for("search_page"))


@app.route("/api/search/suggest")
def api_search_suggest():
    query = request.args.get("q", "").strip()
    if not query:
        return jsonify({"query": query, "results": {"product": [], "category": [], "guide": []}, "see_all_url": None})

    catalog_items = storage.fetch_products()
    index = search.build_search_index(catalog_items, storage.fetch_categories(), storage.fetch_guides())
    grouped = search.group_results(search.search(index, query, limit=settings.SUGGESTION_LIMIT))
    payload = {}
    for result_type, items in grouped.items():
        payload[result_type] = [
            {
                "id": item["id"],
                "title": item["title"],
                "highlighted": str(search.highlight_text(item["title"], query)),
                "brand": item.get("brand", ""),
                "category": item.get("category", ""),
                "relevance": item["relevance"],
            }
            for item in items
        ]
    return jsonify({"query": query, "results": payload, "see_all_url": url_for("search_page", q=query)})


@app.route("/compare")
def compare():
    selected_ids = _parse_compare_ids(request.args) or comparison.comparison_items(session)
    selected = storage.fetch_products_by_ids(selected_ids)
    return render_template(
        "compare.html",
        products=selected,
        selected_ids=selected_ids,
        spec_rows=comparison.comparison_table(selected),
        share_url=url_for("compare", ids=",".join(str(item["id"]) for item in selected)) if selected else None,
        meta=seo.generate_meta_tags(
            {"title": f"Compare Products | {settings.SITE_NAME}", "url": seo.absolute_url("/compare"), "robots": "noindex, follow"}
        ),
    )


@app.route("/compare/add/<int:product_id>", methods=["POST"])
def compare_add(product_id):
    if not storage.fetch_product(product_id):
        abort(404)
    status = comparison.add_to_comparison(session, product_id)
    messages = {
        comparison.ADDED: ("Product added to comparison", "success"),
        comparison.DUPLICATE: ("Product already in comparison", "info"),
        comparison.FULL: (f"Maximum of {settings.MAX_COMPARE_ITEMS} products can be compared", "warning"),
    }
    message, category = messages[status]
    if _wants_json():
        return jsonify({"status": status, "message": message, "count": comparison.comparison_count(session)})
    flash(message, category)
    return _redirect_back("compare")


@app.route("/compare/remove/<int:product_id>", methods=["POST"])
def compare_remove(product_id):
    removed = comparison.remove_from_comparison(session, product_id)
    if removed:
        flash("Product removed from comparison", "info")
    if _wants_json():
        return jsonify({"removed": removed, "count": comparison.comparison_count(session)})
    return _redirect_back("compare")


@app.route("/compare/clear", methods=["POST"])
def compare_clear():
    comparison.clear_comparison(session)
    flash("Comparison cleared", "info")
    return redirect(url_for("compare"))


@app.route("/cart")
def cart():
    items = comparison.cart_items(session)
    products_by_id = {
        product["id"]: product for product in storage.fetch_products_by_ids([item["product_id"] for item in items])
    }
    lines, total = comparison.cart_lines(session, products_by_id)
    return render_template(
        "cart.html",
        lines=lines,
        total=total,
        meta=seo.generate_meta_tags({"title": f"Your Cart | {settings.SITE_NAME}", "robots": "noindex, nofollow"}),
    )


@app.route("/cart/add/<int:product_id>", methods=["POST"])
def cart_add(product_id):
    if not storage.fetch_product(product_id):
        abort(404)
    quantity = _to_int(request.form.get("quantity")) or 1
    if quantity < 1:
        quantity = 1
    retailer = request.form.get("retailer", "amazon").strip().lower() or "amazon"
    comparison.add_to_cart(session, product_id, quantity=quantity, retailer=retailer)
    if _wants_json():
        return jsonify({"added": True, "count": comparison.cart_count(session)})
    flash("Added to cart", "success")
    return _redirect_back("cart")


@app.route("/cart/update/<int:product_id>", methods=["POST"])
def cart_update(product_id):
    retailer = request.form.get("retailer", "amazon").strip().lower()
    quantity = _to_int(request.form.get("quantity"))
    if quantity is None:
        flash("Quantity must be a whole number.", "error")
        return redirect(url_for("cart"))
    if not comparison.update_cart_quantity(session, product_id, retailer, quantity):
        flash("That item is no longer in your cart.", "warning")
    return redirect(url_for("cart"))


@app.route("/cart/remove/<int:product_id>", methods=["POST"])
def cart_remove(product_id):
    retailer = request.form.get("retailer", "").strip().lower() or None
    comparison.remove_from_cart(session, product_id, retailer)
    flash("Removed from cart", "info")
    return redirect(url_for("cart"))


@app.route("/cart/clear", methods=["POST"])
def cart_clear():
    comparison.clear_cart(session)
    flash("Cart cleared", "info")
    return redirect(url_for("cart"))


@app.route("/go/<int:product_id>/<retailer>")
def outbound(product_id, retailer):
    product = storage.fetch_product(product_id)
    if not product:
        abort(404)

    if not affiliate.network_for(retailer):
        stored = catalog.find_retailer(product, retailer) or {}
        url = stored.get("affiliate_url")
        if not affiliate.check_link_health(url)["valid"]:
            abort(404)
        affiliate.track_outbound_click(url, retailer, product_id)
        return redirect(url)

    link = affiliate.rotate_affiliate_link(
        product_id,
        retailer,
        rotation=settings.AFFILIATE_ROTATION,
        product=product,
        base_url=request.host_url,
        referrer=request.referrer,
        user_agent=request.headers.get("User-Agent", ""),
    )
    affiliate.track_outbound_click(link["cloaked"], retailer, product_id)

    response = redirect(link["cloaked"])
    cookie = affiliate.conversion_cookie(link["click_id"], retailer)
    if cookie:
        value, max_age = cookie
        response.set_cookie(affiliate.COOKIE_NAME, value, max_age=max_age, path="/", samesite="Lax")
    return response


@app.route("/redirect")
def affiliate_redirect():
    click_id = request.args.get("click", "").strip()
    click = storage.fetch_click(click_id) if click_id else None
    if not click:
        abort(404)
    return render_template(
        "redirect.html",
        click=click,
        delay=settings.REDIRECT_DELAY_SECONDS,
        meta=seo.generate_meta_tags({"title": f"Redirecting to {click['retailer']}...", "robots": "noindex, nofollow"}),
    )


@app.route("/conversion")
def conversion():
    raw = request.args.get("conversion")
    if raw:
        return jsonify({"tracked": affiliate.process_conversion_param(raw)})

    cookie = affiliate.read_conversion_cookie(request.cookies.get(affiliate.COOKIE_NAME))
    value = _to_float(request.args.get("value"))
    if not cookie or not value:
        return jsonify({"tracked": False, "error": "No conversion data."}), 400
    tracked = affiliate.track_conversion(cookie["click_id"], {"value": value, "source": "cookie"})
    return jsonify({"tracked": tracked})


@app.route("/buying-guides")
def buying_guides():
    return render_template(
        "guides.html",
        guides=storage.fetch_guides(),
        meta=seo.generate_meta_tags(
            {"title": f"Buying Guides | {settings.SITE_NAME}", "url": seo.absolute_url("/buying-guides")}
        ),
    )


@app.route("/blog")
def blog():
    return redirect(url_for("buying_guides"))


@app.route("/guides/<guide_id>")
def guide_detail(guide_id):
    guide = next((item for item in storage.fetch_guides() if item["id"] == guide_id), None)
    if not guide:
        abort(404)
    return render_template(
        "guide_detail.html",
        guide=guide,
        meta=seo.generate_meta_tags(
            {
                "title": f"{guide['title']} | {settings.SITE_NAME}",
                "description": guide.get("description") or None,
                "url": seo.guide_url(guide_id),
                "type": "article",
            }
        ),
    )


@app.route("/<page>")
def static_page(page):
    content = STATIC_PAGES.get(page)
    if not content:
        abort(404)
    return render_template(
        "page.html",
        page=content,
        meta=seo.generate_meta_tags(
            {"title": f"{content['title']} | {settings.SITE_NAME}", "url": seo.absolute_url(f"/{page}")}
        ),
    )


@app.route("/sitemap.xml")
def sitemap_xml():
    return Response(sitemap.sitemap_xml(), mimetype="application/xml")


@app.route("/sitemap-index.xml")
def sitemap_index():
    return Response(sitemap.default_sitemap_index(), mimetype="application/xml")


@app.route("/sitemap-news.xml")
def sitemap_news():
    return Response(sitemap.news_sitemap_xml(), mimetype="application/xml")


@app.route("/sitemap-images.xml")
def sitemap_images():
    return Response(sitemap.image_sitemap_xml(), mimetype="application/xml")


@app.route("/robots.txt")
def robots():
    return Response(seo.robots_txt(), mimetype="text/plain")


@app.route("/api/products")
def api_products():
    max_price_raw = request.args.get("max_price")
    max_price = None
    if max_price_raw not in (None, ""):
        max_price = _to_float(max_price_raw)
        if max_price is None:
            return jsonify({"error": "max_price must be a number."}), 400
        if max_price < 0:
            return jsonify({"error": "max_price must be non-negative."}), 400

    sort = request.args.get("sort", "").strip().lower()
    if sort and sort not in settings.SORT_LABELS:
        return jsonify({"error": "Invalid sort.", "valid_sorts": sorted(settings.SORT_LABELS.keys())}), 400

    filtered = search.advanced_search(
        storage.fetch_products(),
        {
            "category": request.args.get("category", "").strip() or None,
            "max_price": max_price,
            "min_rating": _to_float(request.args.get("min_rating")),
            "brands": [brand for brand in request.args.getlist("brand") if brand],
            "query": request.args.get("q", "").strip(),
            "sort": sort,
        },
    )

    payload = []
    for item in filtered:
        payload.append(
            {
                "id": item["id"],
                "name": item["name"],
                "brand": item["brand"],
                "category": item["category"],
                "best_price": catalog.best_price(item),
                "rating": item["rating"],
                "views": item["views"],
                "image": item["image"],
                "url": url_for("product_detail", product_id=item["id"]),
                "retailers": [retailer["name"] for retailer in item["retailers"]],
            }
        )
    return jsonify(payload)


@app.route("/api/products/<int:product_id>/similar")
def api_similar_products(product_id):
    catalog_items = storage.fetch_products()
    if not any(item["id"] == product_id for item in catalog_items):
        return jsonify({"error": "Product not found."}), 404
    limit = _to_int(request.args.get("limit")) or 4
    similar = catalog.similar_products(catalog_items, product_id, limit=max(1, min(limit, 12)))
    return jsonify([{"id": item["id"], "name": item["name"], "brand": item["brand"]} for item in similar])


@app.route("/admin/login", methods=["GET", "POST"])
def admin_login():
    if request.method == "POST":
        if request.form.get("password", "") == settings.ADMIN_PASSWORD:
            session["is_admin"] = True
            logger.info("Admin signed in")
            target = request.form.get("next", "")
            if target.startswith("/admin"):
                return redirect(target)
            return redirect(url_for("admin_dashboard"))
        flash("Invalid password", "error")
    return render_template(
        "admin/login.html",
        next_url=request.args.get("next", ""),
        meta=seo.generate_meta_tags({"title": "Admin Login", "robots": "noindex, nofollow"}),
    )


@app.route("/admin/logout", methods=["POST"])
def admin_logout():
    session.pop("is_admin", None)
    return redirect(url_for("home"))


@app.route("/admin")
@_admin_required
def admin_dashboard():
    products = storage.fetch_products()
    stats = {
        "total_products": len(products),
        "total_views": sum(product["views"] for product in products),
        "best_sellers": len([product for product in products if product["is_best_seller"]]),
    }
    return render_template(
        "admin/dashboard.html",
        products=products,
        stats=stats,
        meta=seo.generate_meta_tags({"title": "ValueFinder Admin", "robots": "noindex, nofollow"}),
    )


def _render_product_form(product, errors=None, status=200):
    return (
        render_template(
            "admin/product_form.html",
            product=product,
            categories=storage.fetch_categories(),
            retailer_names=[network["name"] for network in settings.AFFILIATE_NETWORKS.values()],
            errors=errors or [],
            meta=seo.generate_meta_tags({"title": "Edit Product", "robots": "noindex, nofollow"}),
        ),
        status,
    )


@app.route("/admin/products/new", methods=["GET", "POST"])
@_admin_required
def admin_product_new():
    if request.method == "GET":
        return _render_product_form(None)

    category_ids = {category["id"] for category in storage.fetch_categories()}
    product, errors = _parse_product_form(request.form, category_ids)
    if errors:
        return _render_product_form(product, errors, 400)

    created = storage.insert_product(product)
    logger.info(f"Product {created['id']} added: {created['name']}")
    flash("Product added successfully!", "success")
    return redirect(url_for("admin_dashboard"))


@app.route("/admin/products/<int:product_id>/edit", methods=["GET", "POST"])
@_admin_required
def admin_product_edit(product_id):
    existing = storage.fetch_product(product_id)
    if not existing:
        abort(404)
    if request.method == "GET":
        return _render_product_form(existing)

    category_ids = {category["id"] for category in storage.fetch_categories()}
    product, errors = _parse_product_form(request.form, category_ids)
    if errors:
        return _render_product_form({**existing, **product}, errors, 400)

    storage.update_product(product_id, product)
    logger.info(f"Product {product_id} updated")
    flash("Product updated successfully!", "success")
    return redirect(url_for("admin_dashboard"))


@app.route("/admin/products/<int:product_id>/delete", methods=["POST"])
@_admin_required
def admin_product_delete(product_id):
    if storage.delete_product(product_id):
        logger.info(f"Product {product_id} deleted")
        flash("Product deleted.", "success")
    else:
        flash("Product not found.", "error")
    return redirect(url_for("admin_dashboard"))


@app.route("/admin/affiliate")
@_admin_required
def admin_affiliate():
    return render_template(
        "admin/affiliate.html",
        report=affiliate.performance_report(),
        meta=seo.generate_meta_tags({"title": "Affiliate Performance", "robots": "noindex, nofollow"}),
    )


@app.route("/admin/affiliate/export")
@_admin_required
def admin_affiliate_export():
    fmt = request.args.get("format", "json").strip().lower()
    if fmt not in {"json", "csv"}:
        fmt = "json"
    mimetype = "text/csv" if fmt == "csv" else "application/json"
    return Response(
        affiliate.export_data(fmt),
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename=affiliate-tracking.{fmt}"},
    )


@app.route("/admin/affiliate/clear", methods=["POST"])
@_admin_required
def admin_affiliate_clear():
    affiliate.clear_tracking_data()
    flash("Tracking data cleared.", "success")
    response = redirect(url_for("admin_affiliate"))
    response.delete_cookie(affiliate.COOKIE_NAME, path="/")
    return response


@app.route("/admin/sitemap")
@_admin_required
def admin_sitemap():
    return render_template(
        "admin/sitemap.html",
        data=sitemap.sitemap_for_admin(),
        meta=seo.generate_meta_tags({"title": "Sitemap Generator", "robots": "noindex, nofollow"}),
    )


@app.route("/admin/sitemap/download/<name>")
@_admin_required
def admin_sitemap_download(name):
    if name == "sitemap.xml":
        body, mimetype = sitemap.sitemap_xml(), "application/xml"
    elif name == "robots.txt":
        body, mimetype = seo.robots_txt(), "text/plain"
    else:
        abort(404)
    return Response(body, mimetype=mimetype, headers={"Content-Disposition": f"attachment; filename={name}"})


if __name__ == "__main__":
    app.run(
        host=settings.FLASK_HOST,
        port=settings.PORT,
        debug=settings.FLASK_DEBUG,
        use_reloader=settings.FLASK_RELOAD,
    )

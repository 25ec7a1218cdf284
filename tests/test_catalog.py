import catalog


def _product(product_id, **overrides):
    item = {
        "id": product_id,
        "name": f"Product {product_id}",
        "brand": "Acme",
        "category": "tools",
        "description": "",
        "features": [],
        "rating": 4.0,
        "views": 0,
        "retailers": [],
    }
    item.update(overrides)
    return item


def test_best_price_ignores_zero_and_missing_prices():
    product = _product(1, retailers=[{"name": "A", "price": 0}, {"name": "B", "price": 20}, {"name": "C", "price": 15.5}])
    assert catalog.best_price(product) == 15.5
    assert catalog.highest_price(product) == 20
    assert catalog.best_price(_product(2)) == 0


def test_retailer_price_falls_back_to_best_price():
    product = _product(1, retailers=[{"name": "Best Buy", "price": 30}, {"name": "Amazon", "price": 25}])
    assert catalog.retailer_price(product, "best buy") == 30
    assert catalog.retailer_price(product, "bestbuy") == 30
    assert catalog.retailer_price(product, "ebay") == 25


def test_find_retailer_matches_normalized_name():
    product = _product(1, retailers=[{"name": "Best Buy", "price": 30}, {"name": "Newegg", "price": 28}])
    assert catalog.find_retailer(product, "bestbuy")["price"] == 30
    assert catalog.find_retailer(product, " NEWEGG ")["name"] == "Newegg"
    assert catalog.find_retailer(product, "ebay") is None


def test_best_retailer_picks_cheapest_entry():
    retailers = [{"name": "A", "price": 12}, {"name": "B", "price": 9}, {"name": "C", "price": 11}]
    assert catalog.best_retailer(retailers)["name"] == "B"
    assert catalog.best_retailer([]) is None


def test_original_price_uses_first_retailer():
    product = _product(1, retailers=[{"name": "A", "price": 80, "original_price": 100}])
    assert catalog.original_price(product) == 100
    assert catalog.original_price(_product(2, retailers=[{"name": "A", "price": 80}])) == 80


def test_trending_and_recently_reviewed(products):
    assert [item["id"] for item in catalog.trending_products(products, 3)] == [3, 1, 4]
    assert [item["id"] for item in catalog.recently_reviewed(products, 4)] == [3, 1, 8, 6]


def test_search_products_requires_every_term(products):
    assert [item["id"] for item in catalog.search_products(products, "noise cancellation")] == [1, 2]
    assert [item["id"] for item in catalog.search_products(products, "SONY headphones")] == [1]
    assert catalog.search_products(products, "headphones", category="home-kitchen") == []


def test_filter_products_by_price_rating_and_retailer(products):
    assert [item["id"] for item in catalog.filter_products(products, {"max_price": 100})] == [4, 5]
    assert [item["id"] for item in catalog.filter_products(products, {"retailers": ["EBAY"]})] == [8]
    assert [item["id"] for item in catalog.filter_products(products, {"min_rating": 4.8})] == [3, 7]
    assert [item["id"] for item in catalog.filter_products(products, {"category": "beauty"})] == [9]
    assert [
        item["id"] for item in catalog.filter_products(products, {"category": "electronics", "brands": ["Bose", "Apple"]})
    ] == [2, 3]


def test_sort_products():
    items = [
        _product(1, rating=3.5, views=10, created_at="2025-01-01T00:00:00Z", retailers=[{"name": "A", "price": 30}]),
        _product(2, rating=4.9, views=5, created_at="2025-03-01T00:00:00Z", retailers=[{"name": "A", "price": 10}]),
        _product(3, rating=4.1, views=50, created_at="bad date", retailers=[{"name": "A", "price": 20}]),
    ]
    assert [item["id"] for item in catalog.sort_products(items, "price-low")] == [2, 3, 1]
    assert [item["id"] for item in catalog.sort_products(items, "price-high")] == [1, 3, 2]
    assert [item["id"] for item in catalog.sort_products(items, "rating")] == [2, 3, 1]
    assert [item["id"] for item in catalog.sort_products(items, "popularity")] == [3, 1, 2]
    assert [item["id"] for item in catalog.sort_products(items, "newest")] == [2, 1, 3]
    assert [item["id"] for item in catalog.sort_products(items, "relevance")] == [1, 2, 3]


def test_brand_retailer_and_price_options(products):
    assert catalog.all_brands(products, "electronics") == ["Apple", "Bose", "Sony"]
    assert catalog.all_retailers(products) == ["Amazon", "Best Buy", "Target", "Walmart", "eBay"]
    assert catalog.price_range(products) == (79.95, 549.0)
    assert catalog.price_range([]) == (0, 0)


def test_similar_products_prefers_category_then_brand():
    items = [
        _product(1, category="tools", brand="Acme"),
        _product(2, category="sports", brand="Acme"),
        _product(3, category="tools", brand="Other"),
        _product(4, category="tools", brand="Acme"),
        _product(5, category="beauty", brand="Other"),
    ]
    assert [item["id"] for item in catalog.similar_products(items, 1)] == [4, 3, 2]
    assert catalog.similar_products(items, 99) == []


def test_related_categories():
    categories = [{"id": "electronics"}, {"id": "home-kitchen"}, {"id": "office-supplies"}, {"id": "tools"}]
    assert [item["id"] for item in catalog.related_categories(categories, "electronics")] == [
        "home-kitchen",
        "office-supplies",
    ]
    assert catalog.related_categories(categories, "unknown") == []


def test_product_slug_and_path():
    product = _product(7, name="Dyson Supersonic: Hair Dryer (2024 Edition) with Extra Long Name Suffix")
    slug = catalog.product_slug(product)
    assert slug == "dyson-supersonic-hair-dryer-2024-edition-with-extr"
    assert len(slug) == 50
    assert catalog.product_path(product) == f"/product/{slug}-7.html"


def test_format_currency_and_savings():
    assert catalog.format_currency(1234.5) == "$1234.50"
    assert catalog.format_currency(None) == "$0.00"
    assert catalog.calculate_savings(100, 75) == {"amount": 25, "percentage": 25}
    assert catalog.calculate_savings(0, 10) is None


def test_star_rating():
    assert catalog.star_rating(4.6) == (4, 1, 0)
    assert catalog.star_rating(3.2) == (3, 0, 2)
    assert catalog.star_rating(9) == (5, 0, 0)
    assert catalog.star_rating(None) == (0, 0, 5)

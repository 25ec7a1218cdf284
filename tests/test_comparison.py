import comparison
import settings


def test_add_to_comparison_reports_status():
    session = {}
    assert comparison.add_to_comparison(session, 1) == comparison.ADDED
    assert comparison.add_to_comparison(session, 1) == comparison.DUPLICATE
    for product_id in range(2, settings.MAX_COMPARE_ITEMS + 1):
        assert comparison.add_to_comparison(session, product_id) == comparison.ADDED
    assert comparison.add_to_comparison(session, 99) == comparison.FULL
    assert comparison.add_to_comparison(session, 1) == comparison.DUPLICATE
    assert comparison.comparison_count(session) == settings.MAX_COMPARE_ITEMS


def test_remove_and_clear_comparison():
    session = {}
    comparison.add_to_comparison(session, 1)
    comparison.add_to_comparison(session, 2)
    assert comparison.remove_from_comparison(session, 1) is True
    assert comparison.remove_from_comparison(session, 1) is False
    assert comparison.comparison_items(session) == [2]
    comparison.clear_comparison(session)
    assert comparison.comparison_count(session) == 0


def test_comparison_table_fills_missing_specs():
    products = [
        {"id": 1, "specifications": {"Weight": "250 g", "Battery Life": "30 hours"}},
        {"id": 2, "specifications": {"Weight": "254 g", "Display": "OLED"}},
        {"id": 3},
    ]
    assert comparison.comparison_table(products) == [
        {"label": "Weight", "values": ["250 g", "254 g", "-"]},
        {"label": "Battery Life", "values": ["30 hours", "-", "-"]},
        {"label": "Display", "values": ["-", "OLED", "-"]},
    ]


def test_add_to_cart_merges_same_product_and_retailer():
    session = {}
    comparison.add_to_cart(session, 1)
    comparison.add_to_cart(session, 1, quantity=2)
    comparison.add_to_cart(session, 1, retailer="walmart")
    items = comparison.cart_items(session)
    assert [(item["product_id"], item["retailer"], item["quantity"]) for item in items] == [
        (1, "amazon", 3),
        (1, "walmart", 1),
    ]
    assert comparison.cart_count(session) == 4


def test_update_cart_quantity():
    session = {}
    comparison.add_to_cart(session, 5, retailer="target")
    assert comparison.update_cart_quantity(session, 5, "target", 4) is True
    assert comparison.cart_count(session) == 4
    assert comparison.update_cart_quantity(session, 5, "amazon", 2) is False
    assert comparison.update_cart_quantity(session, 5, "target", 0) is True
    assert comparison.cart_items(session) == []


def test_remove_from_cart_with_and_without_retailer():
    session = {}
    comparison.add_to_cart(session, 1)
    comparison.add_to_cart(session, 1, retailer="target")
    comparison.add_to_cart(session, 2)
    assert comparison.remove_from_cart(session, 1, "target") is True
    assert comparison.remove_from_cart(session, 1) is True
    assert comparison.remove_from_cart(session, 1) is False
    assert [item["product_id"] for item in comparison.cart_items(session)] == [2]
    comparison.clear_cart(session)
    assert comparison.cart_count(session) == 0


def test_cart_lines_prices_each_retailer_and_skips_missing_products():
    session = {}
    product = {
        "id": 4,
        "retailers": [{"name": "Amazon", "price": 89.99}, {"name": "Walmart", "price": 84.0}],
    }
    comparison.add_to_cart(session, 4, quantity=2, retailer="walmart")
    comparison.add_to_cart(session, 4, retailer="ebay")
    comparison.add_to_cart(session, 404)

    lines, total = comparison.cart_lines(session, {4: product})
    assert [(line["retailer"], line["unit_price"], line["line_total"]) for line in lines] == [
        ("walmart", 84.0, 168.0),
        ("ebay", 84.0, 84.0),
    ]
    assert total == 252.0

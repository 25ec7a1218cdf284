import settings
import storage


def test_init_database_seeds_catalog(db):
    assert len(storage.fetch_products()) == 10
    assert len(storage.fetch_categories()) == 9
    assert [guide["id"] for guide in storage.fetch_guides()][0] == "fitness-tracker-comparison"


def test_init_database_does_not_reseed_existing_tables(db):
    storage.delete_product(1)
    storage.init_database()
    assert storage.fetch_product(1) is None
    assert len(storage.fetch_products()) == 9


def test_init_database_without_seed_creates_empty_tables(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "nested" / "empty.db"))
    storage.init_database(seed=False)
    assert storage.fetch_products() == []
    assert storage.fetch_categories() == []


def test_missing_seed_file_is_treated_as_empty(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setattr(settings, "PRODUCTS_SEED_PATH", str(tmp_path / "missing.json"))
    storage.init_database()
    assert storage.fetch_products() == []
    assert len(storage.fetch_categories()) == 9


def test_product_row_decodes_json_columns(db):
    product = storage.fetch_product(1)
    assert product["brand"] == "Sony"
    assert product["is_best_seller"] is True
    assert product["specifications"]["Battery Life"] == "30 hours"
    assert product["retailers"][0] == {
        "name": "Amazon",
        "price": 328.0,
        "original_price": 399.99,
        "affiliate_url": "https://www.amazon.com/dp/B09XS7JWHH?tag=valuefinderhub-20",
        "in_stock": True,
    }
    assert product["retailers"][1]["original_price"] is None


def test_fetch_products_by_ids_keeps_requested_order(db):
    selected = storage.fetch_products_by_ids([4, 999, 1])
    assert [product["id"] for product in selected] == [4, 1]
    assert storage.fetch_products_by_ids([]) == []


def test_insert_update_delete_product(db):
    created = storage.insert_product(
        {
            "id": 1,
            "name": "Test Kettle",
            "brand": "Acme",
            "category": "home-kitchen",
            "views": 500,
            "retailers": [{"name": "Target", "price": "19.5", "affiliate_url": "https://www.target.com/p/1"}],
        }
    )
    assert created["id"] == 11
    assert created["views"] == 0
    assert created["retailers"][0]["price"] == 19.5
    assert created["retailers"][0]["in_stock"] is True

    assert storage.update_product(created["id"], {"name": "Test Kettle 2", "rating": 4.1})
    updated = storage.fetch_product(created["id"])
    assert updated["name"] == "Test Kettle 2"
    assert updated["brand"] == "Acme"
    assert updated["updated_at"]
    assert updated["created_at"] == created["created_at"]

    assert storage.update_product(999, {"name": "nope"}) is False
    assert storage.delete_product(created["id"]) is True
    assert storage.delete_product(created["id"]) is False


def test_increment_views(db):
    storage.increment_views(2)
    storage.increment_views(2)
    assert storage.fetch_product(2)["views"] == 962


def test_click_and_conversion_round_trip(db):
    storage.insert_click(
        "click_1_abc",
        {"product_id": 4, "retailer": "walmart", "original_url": "https://www.walmart.com/ip/4?affiliate=x"},
    )
    click = storage.fetch_click("click_1_abc")
    assert click["product_id"] == "4"
    assert click["referrer"] == "direct"
    assert click["converted"] is False

    converted = storage.record_conversion("click_1_abc", 42.5, {"value": 42.5})
    assert converted["converted"] is True
    assert converted["conversion_value"] == 42.5
    assert converted["conversion_data"] == {"value": 42.5}
    assert storage.fetch_conversions()[0]["data"] == {"value": 42.5}

    assert storage.record_conversion("click_missing", 10, {}) is None


def test_clear_tracking_removes_clicks_and_conversions(db):
    storage.insert_click("click_2_abc", {"product_id": 1, "retailer": "amazon", "original_url": "https://a"})
    storage.record_conversion("click_2_abc", 5, {})
    storage.clear_tracking()
    assert storage.fetch_clicks() == {}
    assert storage.fetch_conversions() == []


def test_next_rotation_index_cycles(db):
    assert [storage.next_rotation_index("amazon", 3) for _ in range(4)] == [0, 1, 2, 0]
    assert storage.next_rotation_index("walmart", 2) == 0


def test_conversions_cascade_with_clicks(db):
    storage.insert_click("click_3_abc", {"product_id": 1, "retailer": "amazon", "original_url": "https://a"})
    storage.record_conversion("click_3_abc", 5, {})
    connection = storage.db_connect()
    try:
        connection.execute("DELETE FROM affiliate_clicks WHERE click_id = ?", ("click_3_abc",))
        connection.commit()
        count = connection.execute("SELECT COUNT(*) FROM affiliate_conversions").fetchone()[0]
    finally:
        connection.close()
    assert count == 0

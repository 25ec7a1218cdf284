import csv
import io
import json
import re
from datetime import datetime, timezone
from urllib.parse import parse_qs, quote, urlparse

import pytest

import affiliate
import settings
import storage
from log import logger


@pytest.fixture
def fixed_tags(monkeypatch):
    monkeypatch.setitem(settings.AFFILIATE_NETWORKS["amazon"], "tag", "vfh-20")
    monkeypatch.setitem(settings.AFFILIATE_NETWORKS["walmart"], "tag", "vfh")


@pytest.fixture
def analytics_messages():
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), format="{message}")
    yield messages
    logger.remove(handler_id)


def test_network_for_normalizes_retailer_names():
    assert affiliate.network_for("Best Buy")["name"] == "Best Buy"
    assert affiliate.network_for(" AMAZON ")["name"] == "Amazon"
    assert affiliate.network_for("newegg") is None
    assert affiliate.network_for(None) is None


def test_generate_click_id_format():
    click_id = affiliate.generate_click_id()
    assert re.fullmatch(r"click_\d{13}_[0-9a-z]{9}", click_id)
    assert click_id != affiliate.generate_click_id()


def test_build_retailer_url(fixed_tags):
    assert affiliate.build_retailer_url(1, "amazon") == "https://www.amazon.com/dp/1?tag=vfh-20"
    assert affiliate.build_retailer_url("B0 1", "Walmart", tag="x y") == "https://www.walmart.com/ip/B0%201?affiliate=x+y"
    assert affiliate.build_retailer_url(1, "newegg") is None


def test_generate_affiliate_link_records_click(db, fixed_tags, analytics_messages):
    product = storage.fetch_product(1)
    link = affiliate.generate_affiliate_link(1, "Amazon", product=product, referrer="https://google.com")

    assert link["original"] == "https://www.amazon.com/dp/1?tag=vfh-20"
    assert link["network"]["name"] == "Amazon"
    parsed = urlparse(link["cloaked"])
    assert f"{parsed.scheme}://{parsed.netloc}" == settings.BASE_URL
    assert parsed.path == "/redirect"
    assert parse_qs(parsed.query) == {"click": [link["click_id"]]}

    click = storage.fetch_click(link["click_id"])
    assert click["retailer"] == "amazon"
    assert click["product_name"] == product["name"]
    assert click["referrer"] == "https://google.com"
    assert click["original_url"] == link["original"]
    assert any(message.startswith("[analytics] click:") for message in analytics_messages)


def test_generate_affiliate_link_unknown_network(db):
    assert affiliate.generate_affiliate_link(1, "newegg") is None
    assert storage.fetch_clicks() == {}


def test_generate_affiliate_link_uses_request_origin(db, fixed_tags):
    link = affiliate.generate_affiliate_link(2, "walmart", base_url="http://localhost:5000/")
    assert link["cloaked"].startswith("http://localhost:5000/redirect?click=click_")
    assert storage.fetch_click(link["click_id"])["product_name"] == "Unknown Product"


def test_rotate_affiliate_link_round_robin(db, monkeypatch):
    monkeypatch.setitem(settings.AFFILIATE_NETWORKS["amazon"], "tag", ["first-20", "second-20"])
    tags = [
        parse_qs(urlparse(affiliate.rotate_affiliate_link(1, "amazon", rotation="round-robin")["original"]).query)["tag"][0]
        for _ in range(3)
    ]
    assert tags == ["first-20", "second-20", "first-20"]


def test_rotate_affiliate_link_random_picks_configured_tag(db, monkeypatch):
    monkeypatch.setitem(settings.AFFILIATE_NETWORKS["amazon"], "tag", ["first-20", "second-20"])
    link = affiliate.rotate_affiliate_link(1, "amazon")
    assert parse_qs(urlparse(link["original"]).query)["tag"][0] in {"first-20", "second-20"}
    assert affiliate.rotate_affiliate_link(1, "newegg") is None


def test_track_conversion(db, analytics_messages):
    link = affiliate.generate_affiliate_link(3, "bestbuy")
    assert affiliate.track_conversion(link["click_id"], {"value": "549.00", "order_id": "A1"}) is True
    assert affiliate.track_conversion("click_missing", {"value": 10}) is False

    click = storage.fetch_click(link["click_id"])
    assert click["converted"] is True
    assert click["conversion_value"] == 549.0
    assert any(message.startswith("[analytics] conversion:") for message in analytics_messages)


def test_conversion_cookie_lifetime_follows_network():
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    value, max_age = affiliate.conversion_cookie("click_1_abc", "Walmart", now=now)
    assert max_age == 7 * 24 * 3600
    assert affiliate.read_conversion_cookie(value) == {
        "click_id": "click_1_abc",
        "retailer": "walmart",
        "expiration": "2025-01-08T00:00:00Z",
    }
    assert affiliate.conversion_cookie("click_1_abc", "amazon", now=now)[1] == 24 * 3600
    assert affiliate.conversion_cookie("click_1_abc", "newegg") is None


def test_read_conversion_cookie_rejects_bad_values():
    assert affiliate.read_conversion_cookie(None) is None
    assert affiliate.read_conversion_cookie("not-json") is None
    assert affiliate.read_conversion_cookie(quote(json.dumps({"retailer": "amazon"}))) is None


def test_process_conversion_param(db):
    link = affiliate.generate_affiliate_link(4, "target")
    assert affiliate.process_conversion_param(quote(json.dumps({"clickId": link["click_id"], "value": 20}))) is True
    assert affiliate.process_conversion_param(quote(json.dumps({"click_id": link["click_id"]}))) is False
    assert affiliate.process_conversion_param("%7Bbroken") is False
    assert affiliate.process_conversion_param(quote(json.dumps(["click"]))) is False
    assert affiliate.process_conversion_param("") is False


def test_detect_retailer():
    assert affiliate.detect_retailer("https://www.bestbuy.com/site/6505727") == "bestbuy"
    assert affiliate.detect_retailer("https://amazon.com/dp/B0") == "amazon"
    assert affiliate.detect_retailer("https://notamazon.com/dp/B0") is None
    assert affiliate.detect_retailer("garbage") is None


def test_check_link_health():
    assert affiliate.check_link_health("https://www.target.com/p/A-1") == {"valid": True, "status": "unknown"}
    result = affiliate.check_link_health("target.com/p/A-1")
    assert result["valid"] is False
    assert result["status"] == "invalid_url"


def test_performance_report(db):
    first = affiliate.generate_affiliate_link(1, "amazon")
    affiliate.generate_affiliate_link(1, "amazon")
    third = affiliate.generate_affiliate_link(4, "walmart")
    affiliate.generate_affiliate_link(4, "walmart")
    affiliate.track_conversion(first["click_id"], {"value": 100})
    affiliate.track_conversion(third["click_id"], {"value": 50})

    report = affiliate.performance_report()
    assert report["total_clicks"] == 4
    assert report["total_conversions"] == 2
    assert report["conversion_rate"] == 50.0
    assert report["total_revenue"] == 150.0
    assert report["by_retailer"]["amazon"] == {
        "clicks": 2,
        "conversions": 1,
        "revenue": 100.0,
        "conversion_rate": 50.0,
        "average_order_value": 100.0,
    }
    assert report["by_product"]["4"]["product_name"] == "Unknown Product"
    assert sum(day["clicks"] for day in report["by_date"].values()) == 4


def test_performance_report_empty(db):
    report = affiliate.performance_report()
    assert report["conversion_rate"] == 0
    assert report["by_retailer"] == {}


def test_export_data_formats_and_clear(db):
    link = affiliate.generate_affiliate_link(1, "ebay")
    affiliate.track_conversion(link["click_id"], {"value": 12.5})

    exported = json.loads(affiliate.export_data("json"))
    assert list(exported["clicks"]) == [link["click_id"]]
    assert exported["conversions"][0]["conversion_value"] == 12.5

    rows = list(csv.reader(io.StringIO(affiliate.export_data("csv"))))
    assert rows[0][:3] == ["Type", "Click ID", "Product ID"]
    assert [row[0] for row in rows[1:]] == ["Click", "Conversion"]
    assert rows[1][6] == "true"

    affiliate.clear_tracking_data()
    assert affiliate.performance_report()["total_clicks"] == 0

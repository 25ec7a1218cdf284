import csv
import io
import json
import random
import string
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import quote, unquote, urlencode, urlparse

import settings
import storage
from log import logger

COOKIE_NAME = "affiliate_click"
RETAILER_HOSTS = {
    "amazon.com": "amazon",
    "walmart.com": "walmart",
    "target.com": "target",
    "bestbuy.com": "bestbuy",
    "ebay.com": "ebay",
}
_BASE36 = string.digits + string.ascii_lowercase


def network_for(retailer):
    return settings.AFFILIATE_NETWORKS.get(str(retailer or "").strip().lower().replace(" ", ""))


def generate_click_id():
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"click_{int(time.time() * 1000)}_{suffix}"


def _primary_tag(network):
    tag = network["tag"]
    if isinstance(tag, (list, tuple)):
        return tag[0] if tag else ""
    return tag


def build_retailer_url(product_id, retailer, tag=None):
    network = network_for(retailer)
    if not network:
        return None
    query = urlencode({network["tag_param"]: tag or _primary_tag(network)})
    return f"{network['base_url']}{quote(str(product_id), safe='')}?{query}"


def _send_analytics(event_type, data):
    logger.info(f"[analytics] {event_type}: {json.dumps(data, default=str, sort_keys=True)}")


def track_click(click_id, data):
    storage.insert_click(click_id, data)
    _send_analytics("click", data)


def track_conversion(click_id, conversion_data):
    try:
        value = float(conversion_data.get("value") or 0)
    except (TypeError, ValueError):
        value = 0.0
    click = storage.record_conversion(click_id, value, conversion_data)
    if not click:
        return False
    _send_analytics("conversion", {**click, **conversion_data})
    return True


def track_outbound_click(url, retailer, product_id):
    _send_analytics(
        "outbound_click",
        {"url": url, "retailer": retailer, "product_id": product_id, "timestamp": storage.utc_now_iso()},
    )


def generate_affiliate_link(product_id, retailer, product=None, base_url=None, referrer=None, user_agent=None, tag=None):
    network = network_for(retailer)
    if not network:
        return None

    original_url = build_retailer_url(product_id, retailer, tag=tag)
    click_id = generate_click_id()
    track_click(
        click_id,
        {
            "original_url": original_url,
            "product_id": product_id,
            "retailer": retailer.lower(),
            "product_name": (product or {}).get("name") or "Unknown Product",
            "timestamp": storage.utc_now_iso(),
            "referrer": referrer or "direct",
            "user_agent": user_agent or "",
        },
    )

    origin = (base_url or settings.BASE_URL).rstrip("/")
    return {
        "original": original_url,
        "cloaked": f"{origin}/redirect?{urlencode({'click': click_id})}",
        "click_id": click_id,
        "network": network,
    }


def rotate_affiliate_link(product_id, retailer, rotation="random", **kwargs):
    network = network_for(retailer)
    if not network:
        return None

    tags = network["tag"]
    tag = None
    if isinstance(tags, (list, tuple)) and tags:
        if rotation == "round-robin":
            tag = tags[storage.next_rotation_index(retailer.lower(), len(tags))]
        else:
            tag = random.choice(tags)
    return generate_affiliate_link(product_id, retailer, tag=tag, **kwargs)


def conversion_cookie(click_id, retailer, now=None):
    network = network_for(retailer)
    if not network:
        return None
    now = now or datetime.now(timezone.utc)
    max_age = int(network["cookie_hours"] * 3600)
    expiration = now + timedelta(seconds=max_age)
    value = json.dumps(
        {
            "click_id": click_id,
            "retailer": retailer.lower(),
            "expiration": expiration.isoformat(timespec="seconds").replace("+00:00", "Z"),
        },
        separators=(",", ":"),
    )
    return quote(value, safe=""), max_age


def read_conversion_cookie(raw_value):
    if not raw_value:
        return None
    try:
        data = json.loads(unquote(raw_value))
    except ValueError:
        logger.warning("Error parsing affiliate cookie")
        return None
    if not isinstance(data, dict) or not data.get("click_id"):
        return None
    return data


def process_conversion_param(raw_value):
    if not raw_value:
        return False
    try:
        data = json.loads(unquote(raw_value))
    except ValueError:
        logger.warning("Error processing conversion from URL")
        return False
    if not isinstance(data, dict):
        return False
    click_id = data.get("click_id") or data.get("clickId")
    if not click_id or not data.get("value"):
        return False
    return track_conversion(click_id, data)


def detect_retailer(url):
    host = (urlparse(str(url or "")).hostname or "").lower()
    for domain, key in RETAILER_HOSTS.items():
        if host == domain or host.endswith(f".{domain}"):
            return key
    return None


def check_link_health(url):
    parsed = urlparse(str(url or ""))
    if parsed.scheme in {"http", "https"} and parsed.netloc:
        return {"valid": True, "status": "unknown"}
    return {"valid": False, "status": "invalid_url", "error": f"Invalid URL: {url!r}"}


def _rate(part, whole):
    return round(part / whole * 100, 2) if whole else 0


def _bucket(report_section, key, **extra):
    if key not in report_section:
        report_section[key] = {"clicks": 0, "conversions": 0, "revenue": 0.0, **extra}
    return report_section[key]


def performance_report():
    clicks = storage.fetch_clicks()
    conversions = storage.fetch_conversions()
    report = {
        "total_clicks": len(clicks),
        "total_conversions": len(conversions),
        "conversion_rate": 0,
        "total_revenue": 0.0,
        "by_retailer": {},
        "by_product": {},
        "by_date": {},
    }

    for conversion in conversions:
        value = conversion["conversion_value"] or 0
        report["total_revenue"] += value
        date = str(conversion["timestamp"]).split("T")[0]
        for section, key, extra in (
            ("by_retailer", conversion["retailer"], {}),
            ("by_product", conversion["product_id"], {"product_name": conversion["product_name"]}),
            ("by_date", date, {}),
        ):
            bucket = _bucket(report[section], key, **extra)
            bucket["conversions"] += 1
            bucket["revenue"] += value

    for click in clicks.values():
        date = str(click["timestamp"]).split("T")[0]
        _bucket(report["by_retailer"], click["retailer"])["clicks"] += 1
        _bucket(report["by_product"], click["product_id"], product_name=click["product_name"])["clicks"] += 1
        _bucket(report["by_date"], date)["clicks"] += 1

    report["conversion_rate"] = _rate(report["total_conversions"], report["total_clicks"])
    for data in report["by_retailer"].values():
        data["conversion_rate"] = _rate(data["conversions"], data["clicks"])
        data["average_order_value"] = round(data["revenue"] / data["conversions"], 2) if data["conversions"] else 0
    for data in report["by_product"].values():
        data["conversion_rate"] = _rate(data["conversions"], data["clicks"])
    return report


def clear_tracking_data():
    storage.clear_tracking()
    logger.info("Affiliate tracking data cleared")


def export_data(fmt="json"):
    clicks = storage.fetch_clicks()
    conversions = storage.fetch_conversions()

    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(
            ["Type", "Click ID", "Product ID", "Retailer", "Product Name", "Timestamp", "Converted", "Conversion Value"]
        )
        for click_id, click in clicks.items():
            writer.writerow(
                [
                    "Click",
                    click_id,
                    click["product_id"],
                    click["retailer"],
                    click["product_name"],
                    click["timestamp"],
                    str(click["converted"]).lower(),
                    click["conversion_value"],
                ]
            )
        for conversion in conversions:
            writer.writerow(
                [
                    "Conversion",
                    conversion["click_id"],
                    conversion["product_id"],
                    conversion["retailer"],
                    conversion["product_name"],
                    conversion["conversion_date"],
                    "true",
                    conversion["conversion_value"],
                ]
            )
        return buffer.getvalue()

    return json.dumps(
        {"clicks": clicks, "conversions": conversions, "generated": storage.utc_now_iso()},
        indent=2,
    )

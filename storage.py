import json
import os
import sqlite3
from datetime import datetime, timezone

import settings
from log import logger

PRODUCT_COLUMNS = [
    "name",
    "brand",
    "category",
    "subcategory",
    "description",
    "image",
    "additional_images_json",
    "rating",
    "review_count",
    "reviews_json",
    "features_json",
    "specifications_json",
    "retailers_json",
    "is_best_seller",
    "is_new",
    "views",
    "review_date",
    "created_at",
    "updated_at",
]


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _json_dumps(value):
    return json.dumps(value, ensure_ascii=True, separators=(",", ":"))


def _json_loads(value, fallback):
    if not value:
        return fallback
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return fallback


def _to_float(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def db_connect():
    connection = sqlite3.connect(settings.DB_PATH)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def _load_seed(path):
    if not os.path.exists(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as seed_file:
            data = json.load(seed_file)
    except (OSError, ValueError) as exc:
        logger.warning(f"Could not read seed file {path}: {exc}")
        return []
    return data if isinstance(data, list) else []


def _normalize_retailer(raw):
    if not isinstance(raw, dict):
        return None
    name = str(raw.get("name") or "").strip()
    if not name:
        return None
    original_price = raw.get("original_price")
    return {
        "name": name,
        "price": _to_float(raw.get("price")),
        "original_price": _to_float(original_price) if original_price not in (None, "") else None,
        "affiliate_url": str(raw.get("affiliate_url") or "").strip(),
        "in_stock": bool(raw.get("in_stock", True)),
    }


def _product_params(item, now):
    retailers = [entry for entry in (_normalize_retailer(raw) for raw in item.get("retailers") or []) if entry]
    reviews = [review for review in item.get("reviews") or [] if isinstance(review, dict)]
    return {
        "name": str(item.get("name") or "").strip(),
        "brand": str(item.get("brand") or "").strip(),
        "category": str(item.get("category") or "").strip(),
        "subcategory": str(item.get("subcategory") or "").strip(),
        "description": str(item.get("description") or ""),
        "image": str(item.get("image") or "").strip(),
        "additional_images_json": _json_dumps([str(url) for url in item.get("additional_images") or [] if url]),
        "rating": _to_float(item.get("rating")),
        "review_count": _to_int(item.get("review_count"), len(reviews)),
        "reviews_json": _json_dumps(reviews),
        "features_json": _json_dumps([str(feature) for feature in item.get("features") or [] if str(feature).strip()]),
        "specifications_json": _json_dumps(dict(item.get("specifications") or {})),
        "retailers_json": _json_dumps(retailers),
        "is_best_seller": int(bool(item.get("is_best_seller"))),
        "is_new": int(bool(item.get("is_new"))),
        "views": _to_int(item.get("views")),
        "review_date": item.get("review_date"),
        "created_at": item.get("created_at") or now,
        "updated_at": item.get("updated_at"),
    }


def _insert_product(connection, item, now):
    params = _product_params(item, now)
    columns = list(PRODUCT_COLUMNS)
    if item.get("id") not in (None, ""):
        params["id"] = _to_int(item["id"])
        columns.insert(0, "id")
    placeholders = ", ".join(f":{column}" for column in columns)
    cursor = connection.execute(
        f"INSERT INTO products ({', '.join(columns)}) VALUES ({placeholders})",
        params,
    )
    return cursor.lastrowid


def _seed_tables(connection):
    now = utc_now_iso()

    if not connection.execute("SELECT 1 FROM categories LIMIT 1").fetchone():
        for category in _load_seed(settings.CATEGORIES_SEED_PATH):
            if not isinstance(category, dict) or not category.get("id"):
                continue
            connection.execute(
                """
                INSERT OR IGNORE INTO categories (id, name, description, icon, color, created_at, updated_at)
                VALUES (:id, :name, :description, :icon, :color, :created_at, :updated_at)
                """,
                {
                    "id": category["id"],
                    "name": category.get("name") or category["id"],
                    "description": category.get("description", ""),
                    "icon": category.get("icon", "grid"),
                    "color": category.get("color", "primary"),
                    "created_at": category.get("created_at") or now,
                    "updated_at": category.get("updated_at"),
                },
            )

    if not connection.execute("SELECT 1 FROM products LIMIT 1").fetchone():
        seeded = 0
        for item in _load_seed(settings.PRODUCTS_SEED_PATH):
            if isinstance(item, dict) and item.get("name"):
                _insert_product(connection, item, now)
                seeded += 1
        logger.info(f"Seeded {seeded} products")

    if not connection.execute("SELECT 1 FROM guides LIMIT 1").fetchone():
        for guide in _load_seed(settings.GUIDES_SEED_PATH):
            if not isinstance(guide, dict) or not guide.get("id"):
                continue
            connection.execute(
                """
                INSERT OR IGNORE INTO guides (id, title, category, description, published_date, updated_date)
                VALUES (:id, :title, :category, :description, :published_date, :updated_date)
                """,
                {
                    "id": guide["id"],
                    "title": guide.get("title") or guide["id"],
                    "category": guide.get("category", ""),
                    "description": guide.get("description", ""),
                    "published_date": guide.get("published_date"),
                    "updated_date": guide.get("updated_date"),
                },
            )


def init_database(seed=True):
    db_dir = os.path.dirname(os.path.abspath(settings.DB_PATH))
    os.makedirs(db_dir, exist_ok=True)

    with open(settings.SCHEMA_PATH, "r", encoding="utf-8") as schema_file:
        schema_sql = schema_file.read()

    with db_connect() as connection:
        connection.executescript(schema_sql)
        if seed:
            _seed_tables(connection)
        connection.commit()


def _row_to_product(row):
    return {
        "id": row["id"],
        "name": row["name"],
        "brand": row["brand"],
        "category": row["category"],
        "subcategory": row["subcategory"],
        "description": row["description"],
        "image": row["image"],
        "additional_images": _json_loads(row["additional_images_json"], []),
        "rating": float(row["rating"] or 0),
        "review_count": row["review_count"] or 0,
        "reviews": _json_loads(row["reviews_json"], []),
        "features": _json_loads(row["features_json"], []),
        "specifications": _json_loads(row["specifications_json"], {}),
        "retailers": _json_loads(row["retailers_json"], []),
        "is_best_seller": bool(row["is_best_seller"]),
        "is_new": bool(row["is_new"]),
        "views": row["views"] or 0,
        "review_date": row["review_date"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def fetch_products():
    with db_connect() as connection:
        rows = connection.execute("SELECT * FROM products ORDER BY id ASC").fetchall()
    return [_row_to_product(row) for row in rows]


def fetch_product(product_id):
    with db_connect() as connection:
        row = connection.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
    return _row_to_product(row) if row else None


def fetch_products_by_ids(product_ids):
    if not product_ids:
        return []
    placeholders = ",".join("?" for _ in product_ids)
    with db_connect() as connection:
        rows = connection.execute(
            f"SELECT * FROM products WHERE id IN ({placeholders})",
            list(product_ids),
        ).fetchall()
    products_by_id = {row["id"]: _row_to_product(row) for row in rows}
    return [products_by_id[product_id] for product_id in product_ids if product_id in products_by_id]


def insert_product(item):
    data = dict(item)
    data.pop("id", None)
    data["views"] = 0
    with db_connect() as connection:
        product_id = _insert_product(connection, data, utc_now_iso())
        connection.commit()
    return fetch_product(product_id)


def update_product(product_id, updates):
    current = fetch_product(product_id)
    if not current:
        return False
    merged = {**current, **updates}
    params = _product_params(merged, current["created_at"])
    params["updated_at"] = utc_now_iso()
    params["id"] = product_id
    assignments = ", ".join(f"{column} = :{column}" for column in PRODUCT_COLUMNS)
    with db_connect() as connection:
        connection.execute(f"UPDATE products SET {assignments} WHERE id = :id", params)
        connection.commit()
    return True


def delete_product(product_id):
    with db_connect() as connection:
        cursor = connection.execute("DELETE FROM products WHERE id = ?", (product_id,))
        connection.commit()
    return cursor.rowcount > 0


def increment_views(product_id):
    with db_connect() as connection:
        connection.execute("UPDATE products SET views = views + 1 WHERE id = ?", (product_id,))
        connection.commit()


def fetch_categories():
    with db_connect() as connection:
        rows = connection.execute("SELECT * FROM categories ORDER BY name ASC").fetchall()
    return [dict(row) for row in rows]


def fetch_category(category_id):
    with db_connect() as connection:
        row = connection.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
    return dict(row) if row else None


def fetch_guides():
    with db_connect() as connection:
        rows = connection.execute("SELECT * FROM guides ORDER BY published_date DESC, id ASC").fetchall()
    return [dict(row) for row in rows]


def _row_to_click(row):
    click = dict(row)
    click["converted"] = bool(click["converted"])
    click["conversion_data"] = _json_loads(click.pop("conversion_data_json"), None)
    return click


def insert_click(click_id, data):
    with db_connect() as connection:
        connection.execute(
            """
            INSERT INTO affiliate_clicks (
                click_id, product_id, retailer, product_name, original_url, referrer, user_agent, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                click_id,
                str(data["product_id"]),
                data["retailer"],
                data.get("product_name") or "Unknown Product",
                data["original_url"],
                data.get("referrer") or "direct",
                data.get("user_agent") or "",
                data.get("timestamp") or utc_now_iso(),
            ),
        )
        connection.commit()


def fetch_click(click_id):
    with db_connect() as connection:
        row = connection.execute("SELECT * FROM affiliate_clicks WHERE click_id = ?", (click_id,)).fetchone()
    return _row_to_click(row) if row else None


def fetch_clicks():
    with db_connect() as connection:
        rows = connection.execute("SELECT * FROM affiliate_clicks ORDER BY timestamp ASC, click_id ASC").fetchall()
    return {row["click_id"]: _row_to_click(row) for row in rows}


def record_conversion(click_id, value, data):
    conversion_date = utc_now_iso()
    with db_connect() as connection:
        row = connection.execute("SELECT * FROM affiliate_clicks WHERE click_id = ?", (click_id,)).fetchone()
        if not row:
            return None
        connection.execute(
            """
            UPDATE affiliate_clicks
            SET converted = 1, conversion_value = ?, conversion_date = ?, conversion_data_json = ?
            WHERE click_id = ?
            """,
            (value, conversion_date, _json_dumps(data), click_id),
        )
        connection.execute(
            """
            INSERT INTO affiliate_conversions (
                click_id, product_id, retailer, product_name, timestamp, conversion_date, conversion_value, data_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                click_id,
                row["product_id"],
                row["retailer"],
                row["product_name"],
                row["timestamp"],
                conversion_date,
                value,
                _json_dumps(data),
            ),
        )
        connection.commit()
    return fetch_click(click_id)


def fetch_conversions():
    with db_connect() as connection:
        rows = connection.execute("SELECT * FROM affiliate_conversions ORDER BY id ASC").fetchall()
    conversions = []
    for row in rows:
        conversion = dict(row)
        conversion["data"] = _json_loads(conversion.pop("data_json"), {})
        conversions.append(conversion)
    return conversions


def clear_tracking():
    with db_connect() as connection:
        connection.execute("DELETE FROM affiliate_conversions")
        connection.execute("DELETE FROM affiliate_clicks")
        connection.execute("DELETE FROM rotation_state")
        connection.commit()


def next_rotation_index(retailer, size):
    with db_connect() as connection:
        row = connection.execute("SELECT position FROM rotation_state WHERE retailer = ?", (retailer,)).fetchone()
        position = row["position"] if row else 0
        if position >= size:
            position = 0
        connection.execute(
            """
            INSERT INTO rotation_state (retailer, position) VALUES (?, ?)
            ON CONFLICT(retailer) DO UPDATE SET position = excluded.position
            """,
            (retailer, (position + 1) % size),
        )
        connection.commit()
    return position

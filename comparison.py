import catalog
import settings
from storage import utc_now_iso

COMPARISON_SESSION_KEY = "valuefinder_comparison"
CART_SESSION_KEY = "valuefinder_cart"

ADDED = "added"
DUPLICATE = "duplicate"
FULL = "full"


def comparison_items(session):
    return list(session.get(COMPARISON_SESSION_KEY) or [])


def comparison_count(session):
    return len(comparison_items(session))


def add_to_comparison(session, product_id):
    items = comparison_items(session)
    if product_id in items:
        return DUPLICATE
    if len(items) >= settings.MAX_COMPARE_ITEMS:
        return FULL
    items.append(product_id)
    session[COMPARISON_SESSION_KEY] = items
    return ADDED


def remove_from_comparison(session, product_id):
    items = comparison_items(session)
    if product_id not in items:
        return False
    items.remove(product_id)
    session[COMPARISON_SESSION_KEY] = items
    return True


def clear_comparison(session):
    session[COMPARISON_SESSION_KEY] = []


def comparison_table(products):
    spec_keys = []
    for product in products:
        for key in (product.get("specifications") or {}).keys():
            if key not in spec_keys:
                spec_keys.append(key)

    rows = []
    for key in spec_keys:
        rows.append(
            {
                "label": key,
                "values": [(product.get("specifications") or {}).get(key, "-") for product in products],
            }
        )
    return rows


def cart_items(session):
    return [dict(item) for item in session.get(CART_SESSION_KEY) or []]


def cart_count(session):
    return sum(item.get("quantity", 0) for item in cart_items(session))


def add_to_cart(session, product_id, quantity=1, retailer="amazon"):
    items = cart_items(session)
    for item in items:
        if item["product_id"] == product_id and item["retailer"] == retailer:
            item["quantity"] += quantity
            break
    else:
        items.append(
            {
                "product_id": product_id,
                "retailer": retailer,
                "quantity": quantity,
                "added_at": utc_now_iso(),
            }
        )
    session[CART_SESSION_KEY] = items
    return True


def remove_from_cart(session, product_id, retailer=None):
    items = cart_items(session)
    if retailer:
        kept = [item for item in items if not (item["product_id"] == product_id and item["retailer"] == retailer)]
    else:
        kept = [item for item in items if item["product_id"] != product_id]
    session[CART_SESSION_KEY] = kept
    return len(kept) != len(items)


def update_cart_quantity(session, product_id, retailer, quantity):
    items = cart_items(session)
    for item in items:
        if item["product_id"] == product_id and item["retailer"] == retailer:
            break
    else:
        return False

    if quantity <= 0:
        remove_from_cart(session, product_id, retailer)
        return True
    item["quantity"] = quantity
    session[CART_SESSION_KEY] = items
    return True


def clear_cart(session):
    session[CART_SESSION_KEY] = []


def cart_lines(session, products_by_id):
    lines = []
    total = 0.0
    for item in cart_items(session):
        product = products_by_id.get(item["product_id"])
        if not product:
            continue
        unit_price = catalog.retailer_price(product, item["retailer"])
        line_total = unit_price * item["quantity"]
        total += line_total
        lines.append(
            {
                **item,
                "product": product,
                "unit_price": unit_price,
                "line_total": line_total,
            }
        )
    return lines, total

from datetime import date
from xml.sax.saxutils import escape

import seo
import settings
import storage

PRIORITY_DEFAULTS = {
    "homepage": 1.0,
    "main_pages": 0.9,
    "category_pages": 0.8,
    "product_pages": 0.7,
    "blog_pages": 0.6,
    "static_pages": 0.5,
}
XML_ENTITIES = {"'": "&apos;", '"': "&quot;"}
URLSET_OPEN = """<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"
        xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
        xsi:schemaLocation="http://www.sitemaps.org/schemas/sitemap/0.9
        http://www.sitemaps.org/schemas/sitemap/0.9/sitemap.xsd">"""
NEWS_URLSET_OPEN = """<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"
        xmlns:news="http://www.google.com/schemas/sitemap-news/0.9">"""
IMAGE_URLSET_OPEN = """<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"
        xmlns:image="http://www.google.com/schemas/sitemap-image/1.1">"""
NEWS_LIMIT = 1000


def escape_xml(text):
    return escape(str(text or ""), XML_ENTITIES)


def _today():
    return date.today().isoformat()


def _day(value):
    if not value:
        return None
    return str(value).split("T")[0]


def all_urls(products=None, categories=None, guides=None):
    products = storage.fetch_products() if products is None else products
    categories = storage.fetch_categories() if categories is None else categories
    guides = storage.fetch_guides() if guides is None else guides
    today = _today()

    urls = [
        {
            "loc": f"{settings.BASE_URL}/",
            "changefreq": "daily",
            "priority": PRIORITY_DEFAULTS["homepage"],
            "lastmod": today,
        }
    ]
    for page in settings.MAIN_PAGES:
        urls.append(
            {
                "loc": f"{settings.BASE_URL}/{page}",
                "changefreq": "weekly",
                "priority": PRIORITY_DEFAULTS["main_pages"],
                "lastmod": today,
            }
        )
    for category in categories:
        urls.append(
            {
                "loc": seo.category_url(category["id"]),
                "changefreq": "weekly",
                "priority": PRIORITY_DEFAULTS["category_pages"],
                "lastmod": _day(category.get("updated_at") or category.get("created_at")) or today,
            }
        )
    for product in products:
        urls.append(
            {
                "loc": seo.product_url(product),
                "changefreq": "weekly",
                "priority": PRIORITY_DEFAULTS["product_pages"],
                "lastmod": _day(product.get("updated_at") or product.get("created_at")) or today,
            }
        )
    for guide in guides:
        urls.append(
            {
                "loc": seo.guide_url(guide["id"]),
                "changefreq": "monthly",
                "priority": PRIORITY_DEFAULTS["blog_pages"],
                "lastmod": _day(guide.get("updated_date") or guide.get("published_date")) or today,
            }
        )
    return urls


def _url_node(url):
    lines = ["    <url>", f"        <loc>{escape_xml(url['loc'])}</loc>"]
    if url.get("lastmod"):
        lines.append(f"        <lastmod>{escape_xml(url['lastmod'])}</lastmod>")
    lines.append(f"        <changefreq>{url.get('changefreq') or 'weekly'}</changefreq>")
    lines.append(f"        <priority>{url.get('priority') or 0.5:.1f}</priority>")
    lines.append("    </url>")
    return "\n".join(lines)


def sitemap_xml(urls=None):
    urls = all_urls() if urls is None else urls
    body = "\n".join(_url_node(url) for url in urls)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{URLSET_OPEN}\n{body}\n</urlset>\n'


def sitemap_index_xml(entries):
    nodes = []
    for entry in entries:
        lines = ["    <sitemap>", f"        <loc>{escape_xml(entry['loc'])}</loc>"]
        if entry.get("lastmod"):
            lines.append(f"        <lastmod>{escape_xml(entry['lastmod'])}</lastmod>")
        lines.append("    </sitemap>")
        nodes.append("\n".join(lines))
    body = "\n".join(nodes)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{body}\n</sitemapindex>\n"
    )


def default_sitemap_index():
    today = _today()
    return sitemap_index_xml(
        [
            {"loc": f"{settings.BASE_URL}/sitemap.xml", "lastmod": today},
            {"loc": f"{settings.BASE_URL}/sitemap-news.xml", "lastmod": today},
            {"loc": f"{settings.BASE_URL}/sitemap-images.xml", "lastmod": today},
        ]
    )


def recent_guides(guides, limit=NEWS_LIMIT):
    return sorted(guides, key=lambda guide: guide.get("published_date") or "", reverse=True)[:limit]


def news_sitemap_xml(guides=None):
    guides = storage.fetch_guides() if guides is None else guides
    nodes = []
    for guide in recent_guides(guides):
        publication_date = guide.get("published_date") or _today()
        nodes.append(
            "\n".join(
                [
                    "    <url>",
                    f"        <loc>{escape_xml(seo.guide_url(guide['id']))}</loc>",
                    "        <news:news>",
                    "            <news:publication>",
                    f"                <news:name>{escape_xml(settings.SITE_NAME)}</news:name>",
                    "                <news:language>en</news:language>",
                    "            </news:publication>",
                    f"            <news:publication_date>{escape_xml(publication_date)}</news:publication_date>",
                    f"            <news:title>{escape_xml(guide.get('title'))}</news:title>",
                    "        </news:news>",
                    "    </url>",
                ]
            )
        )
    body = "\n".join(nodes)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{NEWS_URLSET_OPEN}\n{body}\n</urlset>\n'


def image_sitemap_xml(products=None):
    products = storage.fetch_products() if products is None else products
    nodes = []
    for product in products:
        if not product.get("image"):
            continue
        caption = (product.get("description") or "")[:200]
        nodes.append(
            "\n".join(
                [
                    "    <url>",
                    f"        <loc>{escape_xml(seo.product_url(product))}</loc>",
                    "        <image:image>",
                    f"            <image:loc>{escape_xml(product['image'])}</image:loc>",
                    f"            <image:title>{escape_xml(product.get('name'))}</image:title>",
                    f"            <image:caption>{escape_xml(caption)}</image:caption>",
                    "        </image:image>",
                    "    </url>",
                ]
            )
        )
    body = "\n".join(nodes)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{IMAGE_URLSET_OPEN}\n{body}\n</urlset>\n'


def sitemap_for_admin():
    products = storage.fetch_products()
    categories = storage.fetch_categories()
    guides = storage.fetch_guides()
    urls = all_urls(products, categories, guides)
    return {
        "sitemap": sitemap_xml(urls),
        "robots": seo.robots_txt(),
        "stats": {
            "total_urls": len(urls),
            "categories": len(categories),
            "products": len(products),
            "guides": len(guides),
            "generated": storage.utc_now_iso(),
        },
    }

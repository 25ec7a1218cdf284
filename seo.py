import json
from datetime import date, timedelta

from markupsafe import Markup

import catalog
import settings


def absolute_url(path):
    if str(path).startswith(("http://", "https://")):
        return path
    return f"{settings.BASE_URL}/{str(path).lstrip('/')}"


def product_url(product):
    return absolute_url(f"/product/{product['id']}")


def category_url(category_id):
    return absolute_url(f"/category/{category_id}")


def guide_url(guide_id):
    return absolute_url(f"/guides/{guide_id}")


def generate_meta_tags(page=None):
    page = page or {}
    title = page.get("title") or f"{settings.SITE_NAME} - Compare Prices & Find Best Deals"
    description = page.get("description") or settings.DEFAULT_DESCRIPTION
    og = {
        "title": page.get("og_title") or title,
        "description": page.get("og_description") or description,
        "image": page.get("og_image") or settings.DEFAULT_OG_IMAGE,
        "url": page.get("url") or settings.BASE_URL,
        "type": page.get("type") or "website",
        "site_name": settings.SITE_NAME,
    }
    twitter = {
        "card": "summary_large_image",
        "title": page.get("twitter_title") or og["title"],
        "description": page.get("twitter_description") or og["description"],
        "image": page.get("twitter_image") or og["image"],
        "site": settings.TWITTER_HANDLE,
    }
    return {
        "title": title,
        "description": description,
        "og": og,
        "twitter": twitter,
        "canonical": page.get("canonical") or page.get("url") or settings.BASE_URL,
        "robots": page.get("robots") or "index, follow",
        "structured_data": list(page.get("structured_data") or []),
    }


def product_meta_tags(product):
    price = catalog.best_price(product)
    name = product["name"]
    return generate_meta_tags(
        {
            "title": f"{name} - Price Comparison & Reviews | {settings.SITE_NAME}",
            "description": (
                f"Compare prices for {name} from Amazon, Walmart, Target and more. Read reviews, see specs, "
                f"and find the best deal. Starting at {catalog.format_currency(price)}."
            ),
            "og_title": f"{name} - {settings.SITE_NAME}",
            "og_description": f"Compare prices and read reviews for {name}. Find the best deal from multiple retailers.",
            "og_image": product.get("image"),
            "twitter_description": f"Price comparison for {name}. Find the best deal!",
            "url": product_url(product),
            "type": "product",
        }
    )


def product_schema(product, today=None):
    today = today or date.today()
    valid_until = (today + timedelta(days=7)).isoformat()
    offers = []
    for retailer in product.get("retailers") or []:
        offers.append(
            {
                "@type": "Offer",
                "url": retailer.get("affiliate_url"),
                "priceCurrency": settings.CURRENCY_CODE,
                "price": retailer.get("price"),
                "priceValidUntil": valid_until,
                "availability": (
                    "https://schema.org/InStock" if retailer.get("in_stock") else "https://schema.org/OutOfStock"
                ),
                "seller": {"@type": "Organization", "name": retailer.get("name")},
            }
        )

    reviews = product.get("reviews") or []
    schema = {
        "@context": "https://schema.org",
        "@type": "Product",
        "name": product["name"],
        "image": [product.get("image")] + list(product.get("additional_images") or []),
        "description": (product.get("description") or "")[:200],
        "brand": {"@type": "Brand", "name": product.get("brand")},
        "review": [
            {
                "@type": "Review",
                "reviewRating": {"@type": "Rating", "ratingValue": review.get("rating"), "bestRating": "5"},
                "author": {"@type": "Person", "name": review.get("author")},
                "reviewBody": review.get("content"),
                "datePublished": review.get("date"),
            }
            for review in reviews[:5]
        ],
        "aggregateRating": {
            "@type": "AggregateRating",
            "ratingValue": product.get("rating"),
            "reviewCount": product.get("review_count") or len(reviews),
        },
    }
    if offers:
        schema["offers"] = offers
    return schema


def category_schema(category):
    return {
        "@context": "https://schema.org",
        "@type": "CollectionPage",
        "name": f"{category['name']} - Product Comparisons",
        "description": category.get("description") or f"Compare {category['name']} products from multiple retailers",
        "url": category_url(category["id"]),
    }


def breadcrumb_schema(items):
    return {
        "@context": "https://schema.org",
        "@type": "BreadcrumbList",
        "itemListElement": [
            {"@type": "ListItem", "position": index, "name": item["name"], "item": item["url"]}
            for index, item in enumerate(items, start=1)
        ],
    }


def faq_schema(faqs):
    return {
        "@context": "https://schema.org",
        "@type": "FAQPage",
        "mainEntity": [
            {
                "@type": "Question",
                "name": faq["question"],
                "acceptedAnswer": {"@type": "Answer", "text": faq["answer"]},
            }
            for faq in faqs
        ],
    }


def product_list_schema(products, page_title):
    return {
        "@context": "https://schema.org",
        "@type": "ItemList",
        "name": page_title,
        "description": f"Product comparisons for {page_title}",
        "numberOfItems": len(products),
        "itemListElement": [
            {
                "@type": "ListItem",
                "position": index,
                "item": {
                    "@type": "Product",
                    "name": product["name"],
                    "url": product_url(product),
                    "image": product.get("image"),
                    "offers": {
                        "@type": "AggregateOffer",
                        "lowPrice": catalog.best_price(product),
                        "highPrice": catalog.highest_price(product),
                        "priceCurrency": settings.CURRENCY_CODE,
                        "offerCount": len(product.get("retailers") or []),
                    },
                },
            }
            for index, product in enumerate(products, start=1)
        ],
    }


def website_schema():
    return {
        "@context": "https://schema.org",
        "@type": "WebSite",
        "name": settings.SITE_NAME,
        "url": f"{settings.BASE_URL}/",
        "potentialAction": {
            "@type": "SearchAction",
            "target": f"{settings.BASE_URL}/search?q={{search_term_string}}",
            "query-input": "required name=search_term_string",
        },
        "description": "Unbiased product comparisons and price tracking across multiple retailers",
        "publisher": {
            "@type": "Organization",
            "name": settings.SITE_NAME,
            "logo": {
                "@type": "ImageObject",
                "url": f"{settings.BASE_URL}/images/logos/logo.png",
                "width": 200,
                "height": 60,
            },
            "contactPoint": {
                "@type": "ContactPoint",
                "contactType": "customer service",
                "email": settings.CONTACT_EMAIL,
                "url": f"{settings.BASE_URL}/contact",
            },
        },
    }


def product_faqs(product):
    name = product["name"]
    rating = product.get("rating") or 0
    if rating >= 4:
        verdict = "highly recommended"
    elif rating >= 3:
        verdict = "a good choice"
    else:
        verdict = "worth considering based on your needs"
    retailer_names = ", ".join(retailer.get("name", "") for retailer in product.get("retailers") or [])
    return [
        {
            "question": f"What is the best price for {name}?",
            "answer": (
                f"The best current price for {name} is {catalog.format_currency(catalog.best_price(product))}. "
                "Prices may vary between retailers."
            ),
        },
        {
            "question": f"Where can I buy {name}?",
            "answer": f"{name} is available at {retailer_names or 'select retailers'} and other retailers.",
        },
        {
            "question": f"Is {name} worth buying?",
            "answer": (
                f"Based on {product.get('review_count') or 0} reviews with an average rating of {rating}/5, "
                f"{name} is {verdict}."
            ),
        },
    ]


def product_breadcrumbs(product, category=None):
    return [
        {"name": "Home", "url": f"{settings.BASE_URL}/"},
        {"name": (category or {}).get("name") or "Category", "url": category_url(product.get("category"))},
        {"name": product["name"], "url": product_url(product)},
    ]


def json_ld(data):
    payload = json.dumps(data, ensure_ascii=False)
    payload = payload.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")
    return Markup(payload)


def robots_txt():
    return f"""# robots.txt for {settings.BASE_URL}
User-agent: *
Allow: /
Disallow: /admin/
Disallow: /private/
Disallow: /tmp/

# Sitemap
Sitemap: {settings.BASE_URL}/sitemap.xml

# Crawl delay
Crawl-delay: 2

# Specific bot directives
User-agent: Googlebot
Allow: /
Disallow: /admin/

User-agent: Googlebot-Image
Allow: /images/
Disallow: /admin/

User-agent: Bingbot
Allow: /
Disallow: /admin/

User-agent: YandexBot
Allow: /
Disallow: /admin/

User-agent: Applebot
Allow: /
Disallow: /admin/
"""

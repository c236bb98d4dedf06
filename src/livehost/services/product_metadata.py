"""Best-effort product details from a shop page.

Anything that cannot be fetched or matched falls back to a placeholder so a
product can always be added to the showcase.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import requests
from bs4 import BeautifulSoup

from ..domain.models import Product
from .chat_ai import build_session

logger = logging.getLogger("livehost.products")

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
FETCH_TIMEOUT = (3, 10)

FALLBACK_PRICE = "Cek keranjang kuning"
FALLBACK_DESCRIPTION = "Produk berkualitas tinggi dengan harga terjangkau"

_RUPIAH = re.compile(r"Rp\s?[\d.,]+[kK]?", re.IGNORECASE)
_PRICE_CLASS = re.compile(r"price", re.IGNORECASE)


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def _title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return _meta_content(soup, property="og:title")


def _image(soup: BeautifulSoup) -> str:
    image = _meta_content(soup, property="og:image")
    if image:
        return image
    img = soup.find("img", src=True)
    return img["src"].strip() if img else ""


def _description(soup: BeautifulSoup) -> str:
    return _meta_content(soup, name="description") or _meta_content(soup, property="og:description")


def _price(soup: BeautifulSoup) -> str:
    match = _RUPIAH.search(soup.get_text(" "))
    if match:
        return match.group(0).strip()
    tag = soup.find(class_=_PRICE_CLASS)
    return tag.get_text(strip=True) if tag else ""


def extract_metadata(html: str) -> dict:
    soup = BeautifulSoup(html or "", "html.parser")
    return {
        "name": _title(soup)[:100],
        "image": _image(soup),
        "description": _description(soup)[:150],
        "price": _price(soup),
    }


def placeholder_image(product_id: int) -> str:
    return f"https://placehold.co/200x200/6366f1/ffffff?text=Product+{product_id}"


def scrape_product(product_id: int, url: str, session: Optional[requests.Session] = None) -> Product:
    meta = {"name": "", "image": "", "description": "", "price": ""}
    http = session or build_session(total_retries=1)
    try:
        resp = http.get(url, headers={"User-Agent": USER_AGENT}, timeout=FETCH_TIMEOUT)
        if resp.ok:
            meta = extract_metadata(resp.text)
        else:
            logger.info("product_fetch_status", extra={"url": url, "status": resp.status_code})
    except requests.exceptions.RequestException as exc:
        logger.warning("product_fetch_failed", extra={"url": url, "err": str(exc)})

    return Product(
        id=product_id,
        url=url,
        name=meta["name"] or f"Product {product_id}",
        price=meta["price"] or FALLBACK_PRICE,
        description=meta["description"] or FALLBACK_DESCRIPTION,
        image=meta["image"] or placeholder_image(product_id),
    )

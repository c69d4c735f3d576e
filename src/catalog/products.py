from __future__ import annotations

import logging
import secrets
import threading
from uuid import uuid4

from src.domain.models import Product

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/150/{colour}"


def _demo_products() -> list[Product]:
    return [
        Product(
            id=str(uuid4()),
            name="Demo Widget A",
            price_lamports="15000000",
            seller="SellerPublicKeyA...",
            image_url=PLACEHOLDER_IMAGE_URL.format(colour="92c952"),
        ),
        Product(
            id=str(uuid4()),
            name="Demo Gadget B",
            price_lamports="25000000",
            seller="SellerPublicKeyB...",
            image_url=PLACEHOLDER_IMAGE_URL.format(colour="771796"),
        ),
    ]


class ProductCatalog:
    """In-memory product list. Lost on restart; ids are uuid4 strings."""

    def __init__(self, products: list[Product] | None = None) -> None:
        self._lock = threading.Lock()
        self._products: list[Product] = list(_demo_products() if products is None else products)

    def list(self) -> list[Product]:
        with self._lock:
            return list(self._products)

    def add(self, name: str, price_lamports: str, seller: str, image_url: str | None = None) -> Product:
        missing = [k for k, v in (("name", name), ("priceLamports", price_lamports), ("seller", seller)) if not v]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        product = Product(
            id=str(uuid4()),
            name=str(name),
            price_lamports=str(price_lamports),
            seller=str(seller),
            image_url=image_url or PLACEHOLDER_IMAGE_URL.format(colour=secrets.token_hex(3)),
        )
        with self._lock:
            self._products.append(product)
        logger.info("Added new product: %s (%s)", product.name, product.id)
        return product

"""
catalog/service.py -- Product rules layered over ProductStore.

Every mutation loads the product first, raises NotFound if it is gone, then
runs the ownership check from auth.dependencies.ensure_owner(). A non-owner
gets Forbidden; nothing is ever silently skipped.
"""

import logging
from typing import Optional

from auth.dependencies import ensure_owner
from auth.models import PublicAccount
from catalog.models import Product, ProductPage
from catalog.store import ProductStore
from core.errors import NotFound

logger = logging.getLogger("tradepost.catalog")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class ProductCatalog:
    def __init__(self, store: ProductStore) -> None:
        self.store = store

    def create(
        self,
        owner: PublicAccount,
        name: str,
        price: float,
        stock: int = 0,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Product:
        product_id = self.store.create_product(
            Product(
                name=name.strip(),
                price=price,
                stock=stock,
                description=_clean(description),
                image_url=_clean(image_url),
                owner_id=owner.id,
            )
        )
        logger.info("Account %s created product %s", owner.id, product_id)
        return self.get(product_id)

    def get(self, product_id: str) -> Product:
        product = self.store.get_product(product_id)
        if product is None:
            raise NotFound("Product not found.")
        return product

    def list_page(self, limit: int = 10, offset: int = 0, query: Optional[str] = None) -> ProductPage:
        return self.store.list_products(limit=limit, offset=offset, query=query)

    def list_owned(self, owner: PublicAccount) -> list[Product]:
        return self.store.list_by_owner(owner.id)

    def update(self, product_id: str, account: PublicAccount, **changes) -> Product:
        """Apply changes to a product owned by account.

        Only keys present in changes are written; string fields are trimmed.
        """
        product = self.get(product_id)
        ensure_owner(product.owner_id, account)

        updates: dict = {}
        for field, value in changes.items():
            if field == "name":
                updates[field] = value.strip()
            elif field in ("description", "image_url"):
                updates[field] = _clean(value)
            else:
                updates[field] = value
        if updates:
            self.store.update_product(product_id, **updates)
        return self.get(product_id)

    def delete(self, product_id: str, account: PublicAccount) -> None:
        product = self.get(product_id)
        ensure_owner(product.owner_id, account)
        self.store.delete_product(product_id)
        logger.info("Account %s deleted product %s", account.id, product_id)

    def delete_all_for(self, owner: PublicAccount) -> int:
        return self.store.delete_by_owner(owner.id)

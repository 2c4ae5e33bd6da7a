"""
catalog/models.py -- Domain dataclasses for the Tradepost product catalog.

These are pure data containers with zero logic. Ownership rules live in
catalog/service.py; persistence lives in catalog/store.py.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Product:
    """A product listed by exactly one owning account.

    owner_id is the canonical 32-char hex id of the owning account. It is set
    once on creation and never changes.

    id is None before the record is written to the database.
    """

    name: str
    price: float
    owner_id: str
    stock: int = 0
    description: Optional[str] = None
    image_url: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class ProductPage:
    """One page of the public product listing, newest first."""

    products: list[Product] = field(default_factory=list)
    total: int = 0
    limit: int = 10
    offset: int = 0

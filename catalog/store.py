"""
catalog/store.py -- SQLAlchemy-backed persistence layer for products.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. ProductStore is the repository;
_row_to_product is the mapper. Route handlers never touch SQL directly.

Search: list_products(query=...) matches a case-insensitive substring against
name and description. The composite (owner_id, created_at) index serves the
"my products" listing.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProductStore(engine)
    product_id = store.create_product(product)
    page = store.list_products(limit=10, offset=0, query="lamp")
    store.update_product(product_id, price=12.5)
"""

from typing import Optional

from sqlalchemy import Column, Float, Index, Integer, MetaData, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine

from auth.store import new_id
from catalog.models import Product, ProductPage
from core.database import now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("price", Float, nullable=False),
    Column("stock", Integer, nullable=False, server_default="0"),
    Column("image_url", String(2048)),
    Column("owner_id", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_products_owner_created", "owner_id", "created_at"),
)

_MUTABLE_FIELDS = frozenset({"name", "description", "price", "stock", "image_url"})


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProductStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def create_product(self, product: Product) -> str:
        """Insert a new product and return its assigned id."""
        product_id = new_id()
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _products.insert().values(
                    id=product_id,
                    name=product.name,
                    description=product.description,
                    price=product.price,
                    stock=product.stock,
                    image_url=product.image_url,
                    owner_id=product.owner_id,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return product_id

    def update_product(self, product_id: str, **fields) -> bool:
        """Update mutable fields on an existing product in one statement.

        Returns True if a row was updated, False if product_id was not found.
        owner_id is deliberately not updatable.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown product fields: {unknown!r}")
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_products.update().where(_products.c.id == product_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_product(self, product_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
            conn.commit()
        return result.rowcount > 0

    def delete_by_owner(self, owner_id: str) -> int:
        """Remove every product owned by owner_id. Returns number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_products.delete().where(_products.c.owner_id == owner_id))
            conn.commit()
        return result.rowcount

    def get_product(self, product_id: str) -> Optional[Product]:
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def list_products(self, limit: int = 10, offset: int = 0, query: Optional[str] = None) -> ProductPage:
        """Return one page of products, newest first, with the unpaged total."""
        condition = None
        if query:
            needle = query.lower()
            condition = or_(
                func.lower(_products.c.name).contains(needle, autoescape=True),
                func.lower(func.coalesce(_products.c.description, "")).contains(needle, autoescape=True),
            )

        rows_stmt = _products.select().order_by(_products.c.created_at.desc()).limit(limit).offset(offset)
        count_stmt = select(func.count()).select_from(_products)
        if condition is not None:
            rows_stmt = rows_stmt.where(condition)
            count_stmt = count_stmt.where(condition)

        with self.engine.connect() as conn:
            rows = conn.execute(rows_stmt).fetchall()
            total = conn.execute(count_stmt).scalar() or 0
        return ProductPage(
            products=[_row_to_product(r) for r in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    def list_by_owner(self, owner_id: str) -> list[Product]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _products.select().where(_products.c.owner_id == owner_id).order_by(_products.c.created_at.desc())
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        description=row.description,
        price=row.price,
        stock=row.stock,
        image_url=row.image_url,
        owner_id=row.owner_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

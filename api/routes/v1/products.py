"""
api/routes/v1/products.py -- Product catalog endpoints.

Routes:
  POST   /api/v1/products          -- create a product owned by the caller (requires auth)
  GET    /api/v1/products          -- paginated listing with optional ?q= search
  GET    /api/v1/products/mine     -- the caller's own products (requires auth)
  GET    /api/v1/products/{id}     -- single product
  PUT    /api/v1/products/{id}     -- update (owner only)
  DELETE /api/v1/products/{id}     -- delete (owner only)

Ownership is enforced in ProductCatalog, which loads the product and calls
ensure_owner() before any write. A non-owner gets 403, a missing product 404.

/products/mine is registered before /products/{product_id} so "mine" is not
captured as an id.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request

from api.models import (
    ID_PATTERN,
    MessageResponse,
    ProductCreate,
    ProductPageResponse,
    ProductResponse,
    ProductUpdate,
)
from auth.dependencies import get_current_account
from auth.models import PublicAccount
from catalog.service import ProductCatalog

router = APIRouter()


def _catalog(request: Request) -> ProductCatalog:
    return request.app.state.catalog


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    account: PublicAccount = Depends(get_current_account),
) -> ProductResponse:
    product = _catalog(request).create(
        account,
        name=body.name,
        price=body.price,
        stock=body.stock,
        description=body.description,
        image_url=body.image_url,
    )
    return ProductResponse.from_product(product)


@router.get("/products", response_model=ProductPageResponse)
def list_products(
    request: Request,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    q: Optional[str] = Query(default=None, max_length=100),
) -> ProductPageResponse:
    """Newest first. q matches a case-insensitive substring of name or description."""
    page = _catalog(request).list_page(limit=limit, offset=offset, query=(q or "").strip() or None)
    return ProductPageResponse(
        products=[ProductResponse.from_product(p) for p in page.products],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.get("/products/mine", response_model=list[ProductResponse])
def my_products(request: Request, account: PublicAccount = Depends(get_current_account)) -> list[ProductResponse]:
    return [ProductResponse.from_product(p) for p in _catalog(request).list_owned(account)]


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(request: Request, product_id: str = Path(pattern=ID_PATTERN)) -> ProductResponse:
    return ProductResponse.from_product(_catalog(request).get(product_id))


@router.put("/products/{product_id}", response_model=ProductResponse)
def update_product(
    request: Request,
    body: ProductUpdate,
    product_id: str = Path(pattern=ID_PATTERN),
    account: PublicAccount = Depends(get_current_account),
) -> ProductResponse:
    product = _catalog(request).update(product_id, account, **body.changes())
    return ProductResponse.from_product(product)


@router.delete("/products/{product_id}", response_model=MessageResponse)
def delete_product(
    request: Request,
    product_id: str = Path(pattern=ID_PATTERN),
    account: PublicAccount = Depends(get_current_account),
) -> MessageResponse:
    _catalog(request).delete(product_id, account)
    return MessageResponse(message="Product deleted successfully.")

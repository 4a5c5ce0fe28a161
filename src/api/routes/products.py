"""Product API routes."""

from fastapi import APIRouter, Depends

from src.api.middleware.error_handler import NotFoundError
from src.schemas.product import ProductListResponse, ProductResponse
from src.services.product_catalog import ProductCatalog, get_product_catalog

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    catalog: ProductCatalog = Depends(get_product_catalog),
) -> ProductListResponse:
    """List the storefront catalog. Publicly readable."""
    products = catalog.list_products()
    return ProductListResponse(products=products, total=len(products))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    catalog: ProductCatalog = Depends(get_product_catalog),
) -> ProductResponse:
    """Get a product by ID."""
    product = catalog.get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product

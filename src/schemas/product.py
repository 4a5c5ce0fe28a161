"""Product Pydantic schemas for API request/response models."""

from pydantic import BaseModel, ConfigDict, Field


class ProductResponse(BaseModel):
    """Schema for a catalog product."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(description="Product identifier")
    name: str = Field(description="Product name")
    description: str = Field(description="Product description")
    price_usdc: float = Field(gt=0, description="Unit price in the stable asset")
    image_url: str = Field(description="Product image URL")


class ProductListResponse(BaseModel):
    """Schema for listing the catalog."""

    products: list[ProductResponse] = Field(description="Catalog products")
    total: int = Field(description="Number of products")

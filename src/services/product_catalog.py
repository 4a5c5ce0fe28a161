"""Fixed storefront catalog priced in the stable asset."""

from src.schemas.product import ProductResponse

PRODUCT_IMAGE_URL = "https://images.pexels.com/photos/546819/pexels-photo-546819.jpeg"

_CATALOG = (
    ("starter-kit", "Starter Kit", "Lightweight entry plan for small experiments.", 1.0),
    ("growth-bundle", "Growth Bundle", "Everything you need to scale your next launch.", 12.0),
    ("pro-suite", "Pro Suite", "Advanced toolkit for high-volume merchants.", 20.0),
    ("studio-templates", "Studio Templates", "Pre-built canvases for rapid ideation.", 7.0),
    ("team-collab", "Team Collaboration", "Unlocks real-time team sessions.", 9.0),
    ("insights-pack", "Insights Pack", "Analytics overlay for every session.", 11.0),
    ("webinar-pass", "Webinar Pass", "Access to a live workshop series.", 4.0),
    ("design-library", "Design Library", "Hand-crafted components and stickers.", 6.5),
    ("ops-playbook", "Ops Playbook", "Operational templates for recurring rituals.", 8.0),
    ("research-deck", "Research Deck", "User interview and discovery toolkit.", 10.0),
    ("retro-kit", "Retro Kit", "Facilitation assets for sprint retros.", 3.5),
    ("strategy-board", "Strategy Board", "Long-range planning frameworks bundle.", 14.0),
)


class ProductCatalog:
    """In-memory product catalog."""

    def __init__(self) -> None:
        self._products = [
            ProductResponse(
                id=product_id,
                name=name,
                description=description,
                price_usdc=price,
                image_url=PRODUCT_IMAGE_URL,
            )
            for product_id, name, description, price in _CATALOG
        ]
        self._by_id = {product.id: product for product in self._products}

    def list_products(self) -> list[ProductResponse]:
        return list(self._products)

    def get_product(self, product_id: str) -> ProductResponse | None:
        return self._by_id.get(product_id)


_product_catalog: ProductCatalog | None = None


def get_product_catalog() -> ProductCatalog:
    """Get or create the catalog singleton."""
    global _product_catalog
    if _product_catalog is None:
        _product_catalog = ProductCatalog()
    return _product_catalog

"""Inventory item records as stored in the `items` table."""

from pydantic import BaseModel, Field


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class Prices(BaseModel):
    full_price: float = 0.0
    sale_price: float = 0.0


class Review(BaseModel):
    review_date: str
    rating: float
    comment: str = ""


class Item(BaseModel):
    item_id: str
    item_name: str
    item_description: str = ""
    brand: str = ""
    manufacturer_address: Address = Field(default_factory=Address)
    prices: Prices = Field(default_factory=Prices)
    categories: list[str] = Field(default_factory=list)
    user_reviews: list[Review] = Field(default_factory=list)
    notes: str = ""
    # Source text the embedding was computed from
    embedding_text: str = ""

    def record(self) -> dict:
        """JSON-ready dict for lookup results (never includes the vector)."""
        return self.model_dump(mode="json")


# Text columns searched by the keyword fallback
KEYWORD_FIELDS = ("item_name", "item_description", "categories", "embedding_text")

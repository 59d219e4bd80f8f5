from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, Optional, Union

from pydantic import AliasChoices, AfterValidator, BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_serializer
from pydantic.alias_generators import to_camel

UPDATABLE_FIELDS = ("name", "description", "price", "quantity", "category", "image_url")

# Matches the products.price column, Numeric(12, 2).
PRICE_DIGITS = 12
PRICE_PLACES = 2


def _product_id_text(value: Union[int, str]) -> str:
    text = str(value).strip()
    if not 1 <= len(text) <= 64:
        raise ValueError("productId must be 1-64 characters")
    return text


# Callers may send numeric ids; they are stored as text.
ProductId = Annotated[Union[StrictInt, StrictStr], AfterValidator(_product_id_text)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ProductCreate(_CamelModel):
    product_id: ProductId
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=2000)
    price: Decimal = Field(max_digits=PRICE_DIGITS, decimal_places=PRICE_PLACES)
    quantity: StrictInt = Field(validation_alias=AliasChoices("quantity", "stockQuantity"))
    category: str = Field(min_length=1, max_length=255)
    image_url: str = Field(min_length=1, max_length=2048)


class ProductUpdate(_CamelModel):
    """
    Partial update. A field is "present" when the caller sent it
    (`model_fields_set`), so a value of 0 counts as present.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    price: Optional[Decimal] = Field(default=None, max_digits=PRICE_DIGITS, decimal_places=PRICE_PLACES)
    quantity: Optional[StrictInt] = Field(
        default=None, validation_alias=AliasChoices("quantity", "stockQuantity")
    )
    category: Optional[str] = Field(default=None, min_length=1, max_length=255)
    image_url: Optional[str] = Field(default=None, min_length=1, max_length=2048)

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in UPDATABLE_FIELDS if name in self.model_fields_set}


class ProductRead(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    product_id: str
    name: str
    description: str
    price: float
    quantity: int
    category: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime

    @field_serializer("created_at")
    def _utc(self, value: datetime) -> str:
        # SQLite hands back naive datetimes; everything is stored in UTC.
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()

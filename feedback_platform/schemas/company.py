from __future__ import annotations

from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Company(BaseModel):
    """Company as published by the external directory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    name: str
    subscription_id: int


class SubscriptionTier(BaseModel):
    """Subscription level; ``name`` is Basic, Premium or Enterprise."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    name: str = Field(validation_alias=AliasChoices("name", "type"))
    price: Decimal = Field(ge=0, description="Price charged per feedback message")

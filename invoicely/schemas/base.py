"""Shared schema config: camelCase on the wire, snake_case in Python."""
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# Money leaves the API as a JSON number, not a string
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

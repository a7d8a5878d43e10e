from typing import Annotated

from pydantic import BaseModel, PlainSerializer
from pydantic.alias_generators import to_camel

# JS clients lose precision past 2**53, so Wei goes over the wire as a string.
# Input accepts either an int or a decimal string.
WeiStr = Annotated[int, PlainSerializer(lambda v: str(v), return_type=str, when_used="json")]


class CamelModel(BaseModel):
    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel

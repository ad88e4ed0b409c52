"""camelCase wire format shared by every API schema.

Attributes stay snake_case in Python; JSON in and out is camelCase
(``is_private`` <-> ``isPrivate``). Input may use either spelling.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelORMModel(CamelModel):
    """Built straight from ORM rows."""
    model_config = ConfigDict(from_attributes=True)

"""Base schema utilities."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Reads ORM rows and dataclasses by attribute."""

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )

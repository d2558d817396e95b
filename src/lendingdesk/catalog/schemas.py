"""Pydantic schemas for catalog items."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

# Characters that would break the pipe-delimited storage format
FORBIDDEN_CHARS = ("|", "\n", "\r")


def check_storable(value: Optional[str]) -> Optional[str]:
    """Reject text that cannot be written to a pipe-delimited record."""
    if value is not None and any(ch in value for ch in FORBIDDEN_CHARS):
        raise ValueError("must not contain '|' or line breaks")
    return value


class ItemCreate(BaseModel):
    """Schema for adding an item to the catalog."""

    id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=200)
    publisher: str = Field("", max_length=200)
    year: int = Field(0, ge=0, le=9999)
    isbn: str = Field("", max_length=20)

    @field_validator("title", "author", "publisher", "isbn")
    @classmethod
    def storable_text(cls, v):
        """Validate that text fields survive the flat-file format."""
        return check_storable(v)

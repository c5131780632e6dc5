"""
Pydantic model describing where an image is fetched from.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ImageSource(BaseModel):
    """A remote image request: the URI plus the optional HTTP method and headers."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    uri: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        if not v:
            raise ValueError("Image source URI cannot be empty.")
        return v

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        return (v or "GET").upper()

    @property
    def identifier(self) -> str:
        """The cache key for this source."""
        return self.uri

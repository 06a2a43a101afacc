"""
cpcli - Data Models

This module contains Pydantic models for configuration, OAuth replies, persisted
cookies and the HAL collection envelope returned by the ClearPass API.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StoredCookie(BaseModel):
    """A web session cookie in a form that can be persisted between runs."""

    name: str = Field(..., description="Cookie name")
    value: str = Field(..., description="Cookie value", repr=False)
    domain: str = Field(default="", description="Cookie domain")
    path: str = Field(default="/", description="Cookie path")


class CPPMConfig(BaseModel):
    """Configuration for a ClearPass connection."""

    model_config = ConfigDict(validate_assignment=True)

    server: str = Field(..., description="ClearPass address, host[:port]")
    client_id: str = Field(default="", description="OAuth2 client ID")
    username: str = Field(default="", description="Username for password grant / web login")
    verify_ssl: bool = Field(default=True, description="Whether to verify SSL certificates")
    page_size: int = Field(default=24, gt=0, description="Items requested per page")
    token: str = Field(default="", description="Cached access token", repr=False)
    refresh: str = Field(default="", description="Cached refresh token", repr=False)
    cookies: list[StoredCookie] = Field(default_factory=list, repr=False)

    @field_validator("server")
    @classmethod
    def validate_server(cls, v):
        """Strip any scheme and trailing slash, the address is host[:port]."""
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("Server address cannot be empty")
        return v


class AuthReply(BaseModel):
    """OAuth2 token endpoint reply."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = ""
    expires_in: int = 0
    token_type: str = ""
    scope: str | None = None


class HalLink(BaseModel):
    href: str = ""


class HalLinks(BaseModel):
    self_: HalLink = Field(default_factory=HalLink, alias="self")
    first: HalLink = Field(default_factory=HalLink)
    last: HalLink = Field(default_factory=HalLink)
    prev: HalLink = Field(default_factory=HalLink)
    next: HalLink = Field(default_factory=HalLink)


class WrappedItems(BaseModel):
    items: list[Any]


class WrappedReply(BaseModel):
    """Envelope of the endpoints that return collections."""

    embedded: WrappedItems = Field(..., alias="_embedded")
    links: HalLinks = Field(default_factory=HalLinks, alias="_links")

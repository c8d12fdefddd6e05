"""Delivery location validation against the India Post pincode directory."""

from __future__ import annotations

import re
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stockwatch.logging_config import get_logger

LOGGER = get_logger(__name__)

PINCODE_API = "https://api.postalpincode.in/pincode"
_CODE_PATTERN = re.compile(r"^\d{6}$")


class PostOffice(BaseModel):
    """A single post office entry from the directory response."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(alias="Name")
    district: str | None = Field(default=None, alias="District")
    state: str | None = Field(default=None, alias="State")
    block: str | None = Field(default=None, alias="Block")
    division: str | None = Field(default=None, alias="Division")


class PincodeLookup(BaseModel):
    """First element of the directory's JSON array."""

    model_config = ConfigDict(extra="ignore")

    status: str = Field(alias="Status")
    message: str | None = Field(default=None, alias="Message")
    post_offices: list[PostOffice] | None = Field(default=None, alias="PostOffice")


class Region(BaseModel):
    post_office: str
    district: str | None = None
    state: str | None = None
    city: str | None = None

    def describe(self) -> str:
        parts = [self.post_office, self.city, self.district, self.state]
        return ", ".join(part for part in parts if part)


class LocationCheck(BaseModel):
    """Outcome of :meth:`GeographyValidator.validate`."""

    is_valid: bool
    region: Region | None = None
    error: str | None = None


class GeographyValidator:
    """Validate 6-digit delivery location codes.

    The format check runs locally; well-formed codes are then looked up in the
    India Post directory. Lookup failures produce an invalid result with an
    error message rather than an exception.
    """

    def __init__(self, *, api_base: str = PINCODE_API, timeout_s: float = 10) -> None:
        self.api_base = api_base.rstrip("/")
        self.timeout_s = timeout_s

    def validate(self, code: str) -> LocationCheck:
        code = (code or "").strip()
        if not _CODE_PATTERN.match(code):
            return LocationCheck(is_valid=False, error="Pincode must be exactly 6 digits")

        try:
            response = requests.get(f"{self.api_base}/{code}", timeout=self.timeout_s)
        except requests.RequestException as exc:
            LOGGER.warning("Pincode lookup failed for %s: %s", code, exc)
            return LocationCheck(is_valid=False, error="Network error while validating pincode")

        if response.status_code >= 400:
            return LocationCheck(
                is_valid=False,
                error=f"API Error: {response.status_code} {response.reason or ''}".strip(),
            )

        try:
            payload: Any = response.json()
        except ValueError:
            return LocationCheck(is_valid=False, error="Invalid response from pincode service")

        if not isinstance(payload, list) or not payload:
            return LocationCheck(is_valid=False, error="Invalid pincode format")

        try:
            lookup = PincodeLookup.model_validate(payload[0])
        except ValidationError as exc:
            LOGGER.warning("Unexpected pincode payload for %s: %s", code, exc)
            return LocationCheck(is_valid=False, error="Invalid response from pincode service")

        if lookup.status in {"Error", "404"}:
            return LocationCheck(is_valid=False, error=lookup.message or "Invalid pincode")

        if lookup.status == "Success" and lookup.post_offices:
            office = lookup.post_offices[0]
            region = Region(
                post_office=office.name,
                district=office.district,
                state=office.state,
                city=office.block or office.division,
            )
            return LocationCheck(is_valid=True, region=region)

        return LocationCheck(is_valid=False, error="Pincode not found")

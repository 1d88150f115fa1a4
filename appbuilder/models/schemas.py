"""Pydantic schemas for API request/response validation."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

# Android rejects versionCode values above this.
MAX_VERSION_CODE = 2_100_000_000


# ============================================================================
# App Record Schemas
# ============================================================================


class AppMetadata(BaseModel):
    """Metadata fields sent with a submission.

    Every field is optional at this level; the submission service enforces
    the required ones so the error maps onto the application's taxonomy.
    """

    package_name: str = ""
    contact_email: str = ""
    app_name: str | None = None
    website: str | None = None
    version_name: str | None = None
    version_code: int | None = Field(None, ge=0, le=MAX_VERSION_CODE)
    addons: list[str] = []
    admob_app_id: str | None = None
    banner_ad: str | None = None
    rewarded_ad: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator("package_name", "contact_email", mode="before")
    @classmethod
    def _strip_required(cls, value: Any) -> str:
        return (value or "").strip()

    @field_validator(
        "app_name", "website", "version_name", "admob_app_id", "banner_ad", "rewarded_ad",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("version_code", mode="before")
    @classmethod
    def _parse_version_code(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return int(value) if value else None
        return value

    @field_validator("addons", mode="before")
    @classmethod
    def _parse_addons(cls, value: Any) -> list[str]:
        """Accept a list, a JSON array string or a comma separated string."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]

        addons: list[str] = []
        for item in value:
            item = str(item).strip()
            if item.startswith("["):
                addons.extend(str(a).strip() for a in json.loads(item))
            else:
                addons.extend(part.strip() for part in item.split(","))
        return [a for a in addons if a]


class AppRecordResponse(BaseModel):
    """Schema for an app record, serialized with camelCase keys."""

    package_name: str
    app_name: str | None = None
    website: str | None = None
    contact_email: str
    version_name: str | None = None
    version_code: int | None = None
    addons: list[str] = []
    icon: str | None = None
    splash: str | None = None
    build_file: str | None = None
    build_aab: str | None = Field(None, alias="buildAAB")
    admob_app_id: str | None = None
    banner_ad: str | None = None
    rewarded_ad: str | None = None
    paid: bool = False
    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ============================================================================
# Endpoint Schemas
# ============================================================================


class CheckAppResponse(BaseModel):
    """Schema for the package existence check."""

    exists: bool
    version_name: str | None = None
    version_code: int | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SubmitResponse(BaseModel):
    """Schema for a successful submission."""

    success: bool = True
    message: str
    download_url: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SearchResponse(BaseModel):
    """Schema for search results."""

    success: bool
    message: str | None = None
    data: AppRecordResponse | None = None
    apk_link: str | None = None
    aab_link: str | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class OrderResponse(BaseModel):
    """Schema wrapping the gateway order object."""

    success: bool = True
    order: dict[str, Any]


class PaymentVerifyRequest(BaseModel):
    """Schema for a payment confirmation sent back by the checkout widget."""

    package_name: str = Field("", alias="packageName")
    razorpay_order_id: str = ""
    razorpay_payment_id: str = ""
    razorpay_signature: str = ""

    class Config:
        populate_by_name = True


class PaymentVerifyResponse(BaseModel):
    """Schema for a fulfilled payment."""

    success: bool = True
    message: str
    download_aab: str = Field(..., alias="downloadAAB")

    class Config:
        populate_by_name = True

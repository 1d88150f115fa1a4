"""App submission router."""

import logging

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from appbuilder.config import Settings
from appbuilder.dependencies import get_app_settings, get_base_url, get_submission_service
from appbuilder.errors import StorageError, ValidationError
from appbuilder.models.schemas import (
    AppMetadata,
    CheckAppResponse,
    SearchResponse,
    SubmitResponse,
)
from appbuilder.services.submission_service import SubmissionService, Upload

router = APIRouter()
logger = logging.getLogger(__name__)

METADATA_FIELDS = (
    "packageName",
    "contactEmail",
    "appName",
    "website",
    "versionName",
    "versionCode",
    "admobAppId",
    "bannerAd",
    "rewardedAd",
)

UPLOAD_CHUNK_SIZE = 1024 * 1024


async def _read_upload(file: UploadFile | None, max_size_mb: int) -> Upload | None:
    if file is None or not file.filename:
        return None
    max_bytes = max_size_mb * 1024 * 1024
    too_large = ValidationError(f"File too large. Maximum size is {max_size_mb}MB.")
    if file.size is not None and file.size > max_bytes:
        raise too_large

    # Stop reading as soon as the limit is passed
    chunks = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise too_large
        chunks.append(chunk)

    if not total:
        return None
    return Upload(filename=file.filename, content=b"".join(chunks))


@router.get("/checkApp", response_model=CheckAppResponse, response_model_exclude_none=True)
async def check_app(
    package_name: str = Query("", alias="packageName"),
    service: SubmissionService = Depends(get_submission_service),
):
    """Report whether a package was already submitted."""
    try:
        result = await service.check_app(package_name.strip())
    except StorageError as e:
        raise StorageError("Check failed") from e
    return CheckAppResponse(**result)


@router.post("/submit", response_model=SubmitResponse)
async def submit_app(
    request: Request,
    icon: UploadFile | None = File(None),
    splash: UploadFile | None = File(None),
    settings: Settings = Depends(get_app_settings),
    base_url: str = Depends(get_base_url),
    service: SubmissionService = Depends(get_submission_service),
):
    """Submit or update an app and build its free APK."""
    form = await request.form()
    raw = {
        field: form.get(field)
        for field in METADATA_FIELDS
        if not isinstance(form.get(field), StarletteUploadFile)
    }
    raw["addons"] = [
        value
        for value in form.getlist("addons") + form.getlist("addons[]")
        if isinstance(value, str)
    ]

    try:
        metadata = AppMetadata.model_validate(raw)
    except PydanticValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise ValidationError(f"Invalid fields: {fields}") from e

    icon_upload = await _read_upload(icon, settings.max_upload_size_mb)
    splash_upload = await _read_upload(splash, settings.max_upload_size_mb)

    try:
        result = await service.submit(metadata, base_url, icon=icon_upload, splash=splash_upload)
    except StorageError as e:
        raise StorageError("Failed to save app") from e

    return SubmitResponse(message=result.message, download_url=result.download_url)


@router.get("/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search_apps(
    q: str = "",
    base_url: str = Depends(get_base_url),
    service: SubmissionService = Depends(get_submission_service),
):
    """Find an app by partial app name or package name."""
    try:
        result = await service.search(q, base_url)
    except StorageError as e:
        raise StorageError("Search failed") from e
    return SearchResponse(**result)

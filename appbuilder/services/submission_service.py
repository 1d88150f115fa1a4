"""Submission service.

Creates or refreshes the app record for a package: stores the uploaded
assets, regenerates the free APK, upserts the record and emails the link.
"""

import logging
from dataclasses import dataclass
from typing import Any

from appbuilder.errors import ValidationError
from appbuilder.models.database import AppRecord
from appbuilder.models.schemas import AppMetadata, AppRecordResponse
from appbuilder.services.app_record_store import AppRecordStore
from appbuilder.services.build_artifacts import BuildArtifactGenerator
from appbuilder.services.file_store import FileStore, validate_package_name
from appbuilder.services.notification_service import NotificationDispatcher, build_ready_email

logger = logging.getLogger(__name__)


@dataclass
class Upload:
    """An uploaded file, already read into memory."""
    filename: str
    content: bytes


@dataclass
class SubmissionResult:
    """Outcome of a submission."""
    record: AppRecord
    download_url: str
    created: bool

    @property
    def message(self) -> str:
        name = self.record.app_name or self.record.package_name
        if self.created:
            return f"{name} created successfully!"
        return f"Updated {name} to v{self.record.version_name or ''}"


class SubmissionService:
    """Orchestrates create-or-update of app submissions."""

    def __init__(
        self,
        store: AppRecordStore,
        file_store: FileStore,
        builder: BuildArtifactGenerator,
        notifier: NotificationDispatcher,
    ):
        self.store = store
        self.file_store = file_store
        self.builder = builder
        self.notifier = notifier

    async def submit(
        self,
        metadata: AppMetadata,
        base_url: str,
        icon: Upload | None = None,
        splash: Upload | None = None,
    ) -> SubmissionResult:
        """Create or update the record for ``metadata.package_name``.

        Args:
            metadata: Submitted metadata
            base_url: Base URL download links are built from
            icon: Optional icon upload
            splash: Optional splash upload

        Returns:
            The saved record, the APK download URL and whether it was created

        Raises:
            ValidationError: If package name or contact email is missing
            StorageError: If a file or the record could not be written
        """
        missing = [
            label
            for label, value in (("packageName", metadata.package_name), ("contactEmail", metadata.contact_email))
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        package_name = validate_package_name(metadata.package_name)

        fields: dict[str, Any] = metadata.model_dump(exclude={"package_name"})
        if icon is not None:
            fields["icon"] = (await self.file_store.save_upload("icon", icon.filename, icon.content)).relative_path
        if splash is not None:
            fields["splash"] = (
                await self.file_store.save_upload("splash", splash.filename, splash.content)
            ).relative_path

        apk = await self.builder.generate(package_name, "apk")
        fields["build_file"] = apk.relative_path

        record, created = await self.store.upsert(package_name, fields)
        download_url = self.file_store.public_url(apk.relative_path, base_url)
        logger.info(f"{'Created' if created else 'Updated'} app record {package_name}")

        subject, body = build_ready_email(record, download_url, updated=not created)
        self.notifier.dispatch(record.contact_email, subject, body)

        return SubmissionResult(record=record, download_url=download_url, created=created)

    async def check_app(self, package_name: str) -> dict[str, Any]:
        """Report whether a package has been submitted and at which version."""
        record = await self.store.find_by_package(package_name)
        if record is None:
            return {"exists": False}
        return {
            "exists": True,
            "version_name": record.version_name,
            "version_code": record.version_code,
        }

    async def search(self, query: str, base_url: str) -> dict[str, Any]:
        """Find a record by partial app or package name.

        Raises:
            ValidationError: If the query is empty
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Missing search query")

        record = await self.store.find_by_name_or_package_substring(query)
        if record is None:
            return {"success": False, "message": "App not found"}

        return {
            "success": True,
            "data": AppRecordResponse.model_validate(record),
            "apk_link": self.file_store.public_url(record.build_file, base_url) if record.build_file else None,
            "aab_link": self.file_store.public_url(record.build_aab, base_url) if record.build_aab else None,
        }

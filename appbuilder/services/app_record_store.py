"""App record store.

CRUD and search over ``AppRecord`` rows keyed by package name. Writes commit
their own transaction so a write is either fully visible or not at all, and
read-modify-write cycles for one package are serialised in-process by
``PackageLocks``; the primary key on ``package_name`` covers other processes.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from appbuilder.errors import NotFoundError, StorageError
from appbuilder.models.database import AppRecord

logger = logging.getLogger(__name__)

# Fields a submission may set; payment state is owned by mark_paid.
MERGEABLE_FIELDS = (
    "app_name",
    "website",
    "contact_email",
    "version_name",
    "version_code",
    "addons",
    "icon",
    "splash",
    "build_file",
    "admob_app_id",
    "banner_ad",
    "rewarded_ad",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PackageLocks:
    """One ``asyncio.Lock`` per package name, dropped once unused."""

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def hold(self, package_name: str):
        lock = self._locks.get(package_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[package_name] = lock
        async with lock:
            yield


class AppRecordStore:
    """Persistence for app submissions."""

    def __init__(self, db: AsyncSession, locks: PackageLocks | None = None):
        self.db = db
        self.locks = locks or PackageLocks()

    async def find_by_package(self, package_name: str) -> AppRecord | None:
        """Get the record for a package, or None."""
        try:
            result = await self.db.execute(
                select(AppRecord).where(AppRecord.package_name == package_name)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Lookup of {package_name} failed: {e}")
            raise StorageError("Failed to read app record") from e

    async def find_by_name_or_package_substring(self, query: str) -> AppRecord | None:
        """Case-insensitive partial match on app name or package name.

        When several records match, the oldest one wins (ties broken by
        package name) so repeated searches return the same record.
        """
        pattern = f"%{_escape_like(query)}%"
        stmt = (
            select(AppRecord)
            .where(
                or_(
                    AppRecord.app_name.ilike(pattern, escape="\\"),
                    AppRecord.package_name.ilike(pattern, escape="\\"),
                )
            )
            .order_by(AppRecord.created_at.asc(), AppRecord.package_name.asc())
            .limit(1)
        )
        try:
            result = await self.db.execute(stmt)
            return result.scalars().first()
        except SQLAlchemyError as e:
            logger.error(f"Search for {query!r} failed: {e}")
            raise StorageError("Failed to search app records") from e

    async def upsert(self, package_name: str, fields: dict[str, Any]) -> tuple[AppRecord, bool]:
        """Create the record for a package or merge ``fields`` into it.

        Empty incoming values (None, "", []) never overwrite stored ones.
        ``paid`` and ``build_aab`` are not touched.

        Returns:
            The saved record and whether it was created
        """
        unknown = set(fields) - set(MERGEABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown fields: {sorted(unknown)}")
        values = {k: v for k, v in fields.items() if not _is_empty(v)}

        async with self.locks.hold(package_name):
            try:
                return await self._upsert(package_name, values)
            except IntegrityError:
                # Another process inserted the same package first
                await self.db.rollback()
                logger.info(f"Concurrent insert for {package_name}, merging instead")
                try:
                    return await self._upsert(package_name, values)
                except SQLAlchemyError as e:
                    await self.db.rollback()
                    logger.error(f"Upsert of {package_name} failed: {e}")
                    raise StorageError("Failed to save app record") from e
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Upsert of {package_name} failed: {e}")
                raise StorageError("Failed to save app record") from e

    async def _upsert(self, package_name: str, values: dict[str, Any]) -> tuple[AppRecord, bool]:
        result = await self.db.execute(
            select(AppRecord).where(AppRecord.package_name == package_name)
        )
        record = result.scalar_one_or_none()
        now = _utcnow()

        if record is None:
            record = AppRecord(**{
                "addons": [],
                **values,
                "package_name": package_name,
                "paid": False,
                "created_at": now,
                "updated_at": now,
            })
            self.db.add(record)
            created = True
        else:
            for key, value in values.items():
                setattr(record, key, value)
            record.updated_at = now
            created = False

        await self.db.commit()
        await self.db.refresh(record)
        return record, created

    async def mark_paid(self, package_name: str, build_aab: str) -> AppRecord:
        """Flag a package as paid and attach its AAB.

        Raises:
            NotFoundError: If the package has no record
        """
        async with self.locks.hold(package_name):
            try:
                result = await self.db.execute(
                    select(AppRecord).where(AppRecord.package_name == package_name)
                )
                record = result.scalar_one_or_none()
                if record is None:
                    raise NotFoundError()

                record.paid = True
                record.build_aab = build_aab
                record.updated_at = _utcnow()
                await self.db.commit()
                await self.db.refresh(record)
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Marking {package_name} paid failed: {e}")
                raise StorageError("Failed to update app record") from e

        return record

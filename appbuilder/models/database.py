"""SQLAlchemy ORM database models for the Web-to-App Builder.

Defines the ``app_records`` table using SQLAlchemy 2.0 declarative mapping
with ``Mapped`` type annotations. ``Base`` maps ``list`` annotations to JSON,
rendered as JSONB on PostgreSQL.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSONType,
        list[Any]: JSONType,
    }


class AppRecord(Base):
    """An app-build submission, one per package name.

    Holds the descriptive metadata sent with the submission, the stored
    asset paths, the stub build artifacts and the payment state. ``paid``
    only ever moves from false to true, and ``build_aab`` is set together
    with it.
    """

    __tablename__ = "app_records"

    package_name: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Descriptive
    app_name: Mapped[str | None] = mapped_column(String(255))
    website: Mapped[str | None] = mapped_column(String(1024))
    contact_email: Mapped[str] = mapped_column(String(320), nullable=False)
    version_name: Mapped[str | None] = mapped_column(String(64))
    version_code: Mapped[int | None] = mapped_column(Integer)
    addons: Mapped[list[Any]] = mapped_column(JSONType, default=list)

    # Assets
    icon: Mapped[str | None] = mapped_column(String(1024))
    splash: Mapped[str | None] = mapped_column(String(1024))

    # Build artifacts
    build_file: Mapped[str | None] = mapped_column(String(1024))
    build_aab: Mapped[str | None] = mapped_column(String(1024))

    # Monetization
    admob_app_id: Mapped[str | None] = mapped_column(String(255))
    banner_ad: Mapped[str | None] = mapped_column(String(255))
    rewarded_ad: Mapped[str | None] = mapped_column(String(255))

    # State
    paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

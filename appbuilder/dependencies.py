"""FastAPI dependency providers.

Process-wide handles (file store, artifact generator, payment gateway client,
notification dispatcher, package locks) live on ``app.state`` and are created
by the application lifespan. Services are assembled per request around the
request's database session.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from appbuilder.config import Settings
from appbuilder.database import get_db
from appbuilder.services.app_record_store import AppRecordStore
from appbuilder.services.payment_service import PaymentService
from appbuilder.services.submission_service import SubmissionService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_base_url(request: Request) -> str:
    """Base URL for download links, configured or taken from the request."""
    settings: Settings = request.app.state.settings
    return settings.public_base_url or str(request.base_url)


def get_record_store(request: Request, db: AsyncSession = Depends(get_db)) -> AppRecordStore:
    return AppRecordStore(db, locks=request.app.state.package_locks)


def get_submission_service(
    request: Request,
    store: AppRecordStore = Depends(get_record_store),
) -> SubmissionService:
    state = request.app.state
    return SubmissionService(
        store=store,
        file_store=state.file_store,
        builder=state.builder,
        notifier=state.dispatcher,
    )


def get_payment_service(
    request: Request,
    store: AppRecordStore = Depends(get_record_store),
) -> PaymentService:
    state = request.app.state
    return PaymentService(
        gateway=state.gateway,
        amount=state.settings.payment_amount,
        currency=state.settings.payment_currency,
        store=store,
        file_store=state.file_store,
        builder=state.builder,
        notifier=state.dispatcher,
    )

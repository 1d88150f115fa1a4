"""Shared fixtures: an on-disk SQLite database, a temporary storage root and
a recording notification sender in place of SMTP."""

import hashlib
import hmac

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from appbuilder.config import Settings
from appbuilder.database import create_engine, create_session_factory, init_models
from appbuilder.main import create_app
from appbuilder.services.app_record_store import AppRecordStore, PackageLocks
from appbuilder.services.build_artifacts import StubBuildGenerator
from appbuilder.services.file_store import FileStore
from appbuilder.services.notification_service import NotificationDispatcher
from appbuilder.services.payment_gateway import RazorpayClient

GATEWAY_SECRET = "test_secret"


def sign(order_id: str, payment_id: str, secret: str = GATEWAY_SECRET) -> str:
    """Signature the checkout widget would send for a payment."""
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class RecordingSender:
    """Notification sender that keeps messages in memory."""

    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str, str]] = []
        self.fail = fail

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((to, subject, html_body))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        storage_root=tmp_path / "uploads",
        public_base_url="http://testserver",
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=GATEWAY_SECRET,
        email_enabled=False,
    )


@pytest_asyncio.fixture
async def session(settings):
    engine = create_engine(settings)
    await init_models(engine)
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def file_store(settings) -> FileStore:
    return FileStore(settings.storage_root, settings.static_url_prefix)


@pytest.fixture
def builder(file_store) -> StubBuildGenerator:
    return StubBuildGenerator(file_store)


@pytest.fixture
def store(session) -> AppRecordStore:
    return AppRecordStore(session, locks=PackageLocks())


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def dispatcher(sender) -> NotificationDispatcher:
    return NotificationDispatcher(sender)


@pytest_asyncio.fixture
async def gateway():
    client = RazorpayClient("rzp_test_key", GATEWAY_SECRET, base_url="https://gateway.test/v1", timeout=5)
    yield client
    await client.close()


@pytest.fixture
def client(settings):
    """Test client running the full application lifespan."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        app.state.dispatcher = NotificationDispatcher(RecordingSender())
        yield test_client

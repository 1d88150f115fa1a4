"""Payment service.

Creates fixed-price orders and fulfils verified payments by generating the
AAB, flagging the record as paid and emailing the link.
"""

import logging
import secrets
import time
from typing import Any

from appbuilder.errors import NotFoundError, SignatureMismatchError, ValidationError
from appbuilder.services.app_record_store import AppRecordStore
from appbuilder.services.build_artifacts import BuildArtifactGenerator
from appbuilder.services.file_store import FileStore
from appbuilder.services.notification_service import NotificationDispatcher, aab_ready_email
from appbuilder.services.payment_gateway import RazorpayClient

logger = logging.getLogger(__name__)


def new_receipt() -> str:
    """Receipt token: epoch milliseconds plus a random nonce."""
    return f"order_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class PaymentService:
    """Orchestrates order creation and payment fulfilment."""

    def __init__(
        self,
        gateway: RazorpayClient,
        amount: int,
        currency: str,
        store: AppRecordStore | None = None,
        file_store: FileStore | None = None,
        builder: BuildArtifactGenerator | None = None,
        notifier: NotificationDispatcher | None = None,
    ):
        self.gateway = gateway
        self.amount = amount
        self.currency = currency
        self.store = store
        self.file_store = file_store
        self.builder = builder
        self.notifier = notifier

    async def create_order(self) -> dict[str, Any]:
        """Create an order for the fixed price.

        Raises:
            GatewayError: If the gateway call fails
        """
        return await self.gateway.create_order(self.amount, self.currency, new_receipt())

    async def verify_and_fulfill(
        self,
        package_name: str,
        order_id: str,
        payment_id: str,
        signature: str,
        base_url: str,
    ) -> dict[str, str]:
        """Check a payment confirmation and deliver the AAB.

        The signature is checked before anything else happens, so a rejected
        confirmation leaves no trace.

        Raises:
            ValidationError: If a field is missing
            SignatureMismatchError: If the signature does not match
            NotFoundError: If the package was never submitted
        """
        if not all([package_name, order_id, payment_id, signature]):
            raise ValidationError("Missing payment verification fields")

        if not self.gateway.verify_signature(order_id, payment_id, signature):
            logger.warning(f"Signature mismatch for {package_name} (order {order_id})")
            raise SignatureMismatchError()

        if await self.store.find_by_package(package_name) is None:
            raise NotFoundError()

        aab = await self.builder.generate(package_name, "aab")
        record = await self.store.mark_paid(package_name, aab.relative_path)
        download_url = self.file_store.public_url(aab.relative_path, base_url)
        logger.info(f"Payment {payment_id} verified for {package_name}")

        subject, body = aab_ready_email(record, download_url)
        self.notifier.dispatch(record.contact_email, subject, body)

        return {"download_aab": download_url}

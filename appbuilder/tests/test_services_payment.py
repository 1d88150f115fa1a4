"""Tests for the payment service, including the end-to-end build flow."""

from unittest.mock import AsyncMock, patch

import pytest

from appbuilder.errors import GatewayError, NotFoundError, SignatureMismatchError, ValidationError
from appbuilder.models.schemas import AppMetadata
from appbuilder.services.payment_service import PaymentService, new_receipt
from appbuilder.services.submission_service import SubmissionService
from appbuilder.tests.conftest import sign

BASE_URL = "http://testserver"


@pytest.fixture
def payments(gateway, store, file_store, builder, dispatcher) -> PaymentService:
    return PaymentService(
        gateway=gateway,
        amount=699900,
        currency="INR",
        store=store,
        file_store=file_store,
        builder=builder,
        notifier=dispatcher,
    )


@pytest.fixture
def submissions(store, file_store, builder, dispatcher) -> SubmissionService:
    return SubmissionService(store=store, file_store=file_store, builder=builder, notifier=dispatcher)


async def _submit(submissions: SubmissionService, package_name: str = "com.acme.app"):
    metadata = AppMetadata.model_validate({
        "packageName": package_name,
        "contactEmail": "a@x.com",
        "appName": "Acme",
    })
    return await submissions.submit(metadata, BASE_URL)


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_fixed_amount_and_currency(self, payments, gateway):
        with patch.object(gateway, "create_order", new_callable=AsyncMock) as mock_create:
            mock_create.return_value = {"id": "order_abc"}
            order = await payments.create_order()

        assert order == {"id": "order_abc"}
        amount, currency, receipt = mock_create.call_args.args
        assert (amount, currency) == (699900, "INR")
        assert receipt.startswith("order_")

    @pytest.mark.asyncio
    async def test_gateway_error_propagates(self, payments, gateway):
        with patch.object(gateway, "create_order", new_callable=AsyncMock) as mock_create:
            mock_create.side_effect = GatewayError()
            with pytest.raises(GatewayError):
                await payments.create_order()

    def test_receipts_are_unique_within_a_millisecond(self):
        with patch("appbuilder.services.payment_service.time.time", return_value=1700000000.0):
            receipts = {new_receipt() for _ in range(100)}
        assert len(receipts) == 100
        assert all(r.startswith("order_1700000000000_") for r in receipts)


class TestVerifyAndFulfill:
    @pytest.mark.asyncio
    async def test_valid_signature_marks_paid(self, payments, submissions, store, file_store, dispatcher, sender):
        await _submit(submissions)
        await dispatcher.drain()

        result = await payments.verify_and_fulfill(
            "com.acme.app", "order_1", "pay_1", sign("order_1", "pay_1"), BASE_URL
        )

        assert result == {"download_aab": "http://testserver/uploads/builds/com.acme.app.aab"}
        record = await store.find_by_package("com.acme.app")
        assert record.paid is True
        assert record.build_aab == "builds/com.acme.app.aab"
        assert (file_store.root / "builds" / "com.acme.app.aab").exists()

        await dispatcher.drain()
        to, subject, body = sender.sent[-1]
        assert to == "a@x.com"
        assert subject == "Acme AAB Build Ready"
        assert result["download_aab"] in body

    @pytest.mark.asyncio
    async def test_tampered_signature_has_no_side_effects(self, payments, submissions, store, file_store, dispatcher, sender):
        await _submit(submissions)
        await dispatcher.drain()
        sent_before = len(sender.sent)

        with pytest.raises(SignatureMismatchError):
            await payments.verify_and_fulfill(
                "com.acme.app", "order_1", "pay_1", sign("order_1", "pay_2"), BASE_URL
            )

        record = await store.find_by_package("com.acme.app")
        assert record.paid is False
        assert record.build_aab is None
        assert not (file_store.root / "builds" / "com.acme.app.aab").exists()
        await dispatcher.drain()
        assert len(sender.sent) == sent_before

    @pytest.mark.asyncio
    async def test_unknown_package_rejected_without_artifact(self, payments, file_store):
        with pytest.raises(NotFoundError):
            await payments.verify_and_fulfill(
                "com.never.submitted", "order_1", "pay_1", sign("order_1", "pay_1"), BASE_URL
            )
        assert not (file_store.root / "builds" / "com.never.submitted.aab").exists()

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, payments):
        with pytest.raises(ValidationError):
            await payments.verify_and_fulfill("com.acme.app", "order_1", "", "sig", BASE_URL)

    @pytest.mark.asyncio
    async def test_repeat_verification_keeps_paid(self, payments, submissions, store):
        await _submit(submissions)

        await payments.verify_and_fulfill("com.acme.app", "order_1", "pay_1", sign("order_1", "pay_1"), BASE_URL)
        await payments.verify_and_fulfill("com.acme.app", "order_2", "pay_2", sign("order_2", "pay_2"), BASE_URL)

        record = await store.find_by_package("com.acme.app")
        assert record.paid is True
        assert record.build_aab == "builds/com.acme.app.aab"

    @pytest.mark.asyncio
    async def test_submit_verify_search_scenario(self, payments, submissions):
        submitted = await _submit(submissions)
        assert submitted.record.paid is False
        assert submitted.record.build_file == "builds/com.acme.app.apk"

        verified = await payments.verify_and_fulfill(
            "com.acme.app", "order_9", "pay_9", sign("order_9", "pay_9"), BASE_URL
        )
        assert verified["download_aab"].endswith("/uploads/builds/com.acme.app.aab")

        found = await submissions.search("acme", BASE_URL)
        assert found["success"]
        assert found["data"].paid is True
        assert found["apk_link"] == "http://testserver/uploads/builds/com.acme.app.apk"
        assert found["aab_link"] == "http://testserver/uploads/builds/com.acme.app.aab"

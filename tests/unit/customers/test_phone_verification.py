"""Unit tests for PhoneVerificationService."""

from __future__ import annotations

import uuid

import pytest
from django.core.cache import cache

from marketplace.core.verification import CacheVerificationCodeStore
from marketplace.customers.exceptions import (
    CustomerNotFound,
    MissingPhone,
    VerificationFailed,
    VerificationNotSent,
)
from marketplace.customers.repositories import CustomerDjangoRepository
from marketplace.customers.services import PhoneVerificationService
from marketplace.notifications.dispatcher import NotificationDispatcher
from marketplace.notifications.messages import NotificationKind
from marketplace.notifications.transports import NotificationTransport

pytestmark = pytest.mark.unit


class RecordingTransport(NotificationTransport):
    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    def send(self, kind, recipient, payload):
        if self.fail:
            raise RuntimeError("SMS provider down")
        self.sent.append((kind, recipient, dict(payload)))


@pytest.fixture()
def store():
    cache.clear()
    return CacheVerificationCodeStore(prefix="otp-test")


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def service(store, transport):
    return PhoneVerificationService(
        CustomerDjangoRepository(),
        code_store=store,
        dispatcher=NotificationDispatcher(transport),
    )


def sent_code(transport):
    _, _, payload = transport.sent[-1]
    return payload["code"]


class TestSendCode:
    def test_code_is_texted_to_the_phone(self, service, transport, customer, settings):
        ttl = service.send_code(customer.id)

        assert ttl == settings.MARKETPLACE_VERIFICATION_CODE_TTL
        [(kind, recipient, payload)] = transport.sent
        assert kind == NotificationKind.VERIFICATION_CODE
        assert recipient.phone == "9876543210"
        assert recipient.email == ""
        assert len(payload["code"]) == 6

    def test_customer_without_phone_is_rejected(self, service, customer):
        customer.phone = ""
        customer.save()

        with pytest.raises(MissingPhone):
            service.send_code(customer.id)

    def test_unknown_customer(self, service):
        with pytest.raises(CustomerNotFound):
            service.send_code(uuid.uuid4())

    def test_undelivered_code_is_revoked(self, store, customer):
        service = PhoneVerificationService(
            CustomerDjangoRepository(),
            code_store=store,
            dispatcher=NotificationDispatcher(RecordingTransport(fail=True)),
        )

        with pytest.raises(VerificationNotSent):
            service.send_code(customer.id)

        assert cache.get(f"otp-test:phone:{customer.id}:{customer.phone}") is None


class TestConfirm:
    def test_correct_code_marks_phone_verified(self, service, transport, customer):
        service.send_code(customer.id)

        verified = service.confirm(customer.id, sent_code(transport))

        assert verified.phone_verified_at is not None
        customer.refresh_from_db()
        assert customer.phone_verified_at == verified.phone_verified_at

    def test_wrong_code_is_rejected(self, service, transport, customer):
        service.send_code(customer.id)
        wrong = "000000" if sent_code(transport) != "000000" else "111111"

        with pytest.raises(VerificationFailed):
            service.confirm(customer.id, wrong)

        customer.refresh_from_db()
        assert customer.phone_verified_at is None

    def test_changing_the_number_invalidates_the_code(self, service, transport, customer):
        service.send_code(customer.id)
        customer.phone = "9123456780"
        customer.save()

        with pytest.raises(VerificationFailed):
            service.confirm(customer.id, sent_code(transport))

"""Tests for the remittance models: defaults, codes, status and IBAN encryption."""

import re
import uuid
from decimal import Decimal

import pytest

from hawala.models.remittance import (
    IncomingRemittance,
    IncomingStatus,
    OutgoingRemittance,
    OutgoingStatus,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def outgoing():
    return OutgoingRemittance(
        tenant_id=uuid.uuid4(),
        branch_id=uuid.uuid4(),
        sender_name="Reza Karimi",
        recipient_name="Maryam Karimi",
        amount=Decimal("1000000.00"),
        acquisition_rate=Decimal("85000"),
        equivalent_amount=Decimal("11.76"),
        created_by=uuid.uuid4(),
    )


@pytest.fixture
def incoming():
    return IncomingRemittance(
        tenant_id=uuid.uuid4(),
        branch_id=uuid.uuid4(),
        sender_name="Omid Rahimi",
        recipient_name="Sara Rahimi",
        amount=Decimal("400000.00"),
        payout_rate=Decimal("84000"),
        equivalent_amount=Decimal("4.76"),
        created_by=uuid.uuid4(),
    )


# ---------------------------------------------------------------------------
# Creation & codes
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_outgoing_defaults(self, outgoing):
        assert outgoing.id is not None
        assert outgoing.status == OutgoingStatus.PENDING
        assert outgoing.settled_amount == Decimal("0")
        assert outgoing.remaining_amount == outgoing.amount
        assert outgoing.total_profit == Decimal("0")
        assert outgoing.created_at is not None

    def test_incoming_defaults(self, incoming):
        assert incoming.status == IncomingStatus.PENDING
        assert incoming.allocated_amount == Decimal("0")
        assert incoming.remaining_amount == incoming.amount
        assert incoming.paid_amount == Decimal("0")
        assert incoming.unpaid_amount == incoming.equivalent_amount

    def test_outgoing_code_format(self, outgoing):
        assert re.fullmatch(r"OUT-[A-Z0-9]{8}", outgoing.code)

    def test_incoming_code_format(self, incoming):
        assert re.fullmatch(r"IN-[A-Z0-9]{8}", incoming.code)

    def test_codes_are_random(self):
        codes = {OutgoingRemittance.generate_code() for _ in range(50)}
        assert len(codes) == 50


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------


class TestOutgoingStatus:
    def test_partial_then_completed(self, outgoing):
        outgoing.apply_settlement(Decimal("400000.00"), Decimal("0.1"))
        assert outgoing.status == OutgoingStatus.PARTIAL
        assert outgoing.settled_amount + outgoing.remaining_amount == outgoing.amount
        assert outgoing.completed_at is None

        outgoing.apply_settlement(Decimal("600000.00"), Decimal("0.2"))
        assert outgoing.status == OutgoingStatus.COMPLETED
        assert outgoing.remaining_amount == Decimal("0")
        assert outgoing.total_profit == Decimal("0.3")
        assert outgoing.completed_at is not None
        assert outgoing.is_terminal

    def test_cancelled_is_sticky(self, outgoing):
        outgoing.status = OutgoingStatus.CANCELLED
        outgoing.refresh_status()
        assert outgoing.status == OutgoingStatus.CANCELLED


class TestIncomingStatus:
    def test_allocation_flow(self, incoming):
        incoming.apply_allocation(Decimal("100000.00"))
        assert incoming.status == IncomingStatus.PARTIAL
        incoming.apply_allocation(Decimal("300000.00"))
        assert incoming.status == IncomingStatus.COMPLETED
        assert incoming.allocated_amount + incoming.remaining_amount == incoming.amount

    def test_fully_paid_and_allocated_is_paid(self, incoming):
        incoming.apply_allocation(incoming.amount)
        incoming.apply_payment(incoming.equivalent_amount, uuid.uuid4())
        assert incoming.status == IncomingStatus.PAID
        assert incoming.paid_at is not None

    def test_payment_before_full_allocation_keeps_partial(self, incoming):
        incoming.apply_allocation(Decimal("100000.00"))
        incoming.apply_payment(Decimal("1.00"), uuid.uuid4())
        assert incoming.status == IncomingStatus.PARTIAL


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------


class TestIbanEncryption:
    def test_recipient_iban_round_trip(self, outgoing):
        outgoing.set_recipient_iban("IR820540102680020817909002")
        assert outgoing.recipient_iban != "IR820540102680020817909002"
        assert outgoing.get_recipient_iban() == "IR820540102680020817909002"

    def test_missing_iban_is_none(self, incoming):
        assert incoming.get_sender_iban() is None

    def test_wrong_key_fails(self, outgoing):
        from cryptography.fernet import Fernet
        from hawala.core.security import configure_fernet

        outgoing.set_recipient_iban("IR820540102680020817909002")
        configure_fernet(Fernet.generate_key())
        with pytest.raises(ValueError):
            outgoing.get_recipient_iban()

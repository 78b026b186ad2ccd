from datetime import date
from decimal import Decimal
from unittest import mock

import pytest
import requests

from apps.bookings.application.command_handlers import (
    ApproveBookingCommand,
    BookingWorkflowService,
    CreateBookingCommand,
)
from apps.payouts.client import PayoutClient, PayoutResult
from apps.payouts.dispatcher import PayoutDispatcher
from apps.payouts.models import HostAccount, PayoutMethod, PendingTransfer
from apps.wallets.ledger import WalletLedger
from apps.wallets.models import Transaction
from shared.domain.exceptions import ExternalServiceError, StateError, ValidationError


class FakePayoutClient:
    def __init__(self, status="SUCCESS", error=None):
        self.status = status
        self.error = error
        self.calls = []

    def submit_payout(self, account_ref, amount, currency, *, reference=""):
        self.calls.append((account_ref, amount, currency, reference))
        if self.error:
            raise self.error
        return PayoutResult(payout_batch_id="BATCH-1", status=self.status, raw_status=self.status)


@pytest.fixture
def service():
    return BookingWorkflowService()


@pytest.fixture
def paid_booking(service, guest, villa):
    WalletLedger().top_up(guest.id, "1890.00", reference="bank-1")
    return service.create_booking(CreateBookingCommand(
        guest_id=guest.id,
        listing_id=villa.id,
        check_in=date(2026, 12, 1),
        check_out=date(2026, 12, 3),
    ))


def approve(service, booking, host):
    return service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))


@pytest.mark.django_db
def test_wallet_host_is_credited_without_transfer(service, paid_booking, host):
    approve(service, paid_booking, host)

    assert WalletLedger().balance(host.id) == Decimal("1800.00")
    assert HostAccount.objects.get(host=host).total_earnings == Decimal("1800.00")
    assert not PendingTransfer.objects.exists()


@pytest.mark.django_db
def test_paypal_host_gets_pending_transfer(service, paid_booking, host):
    PayoutDispatcher().set_payout_method(host.id, PayoutMethod.Type.PAYPAL, "host@example.com")

    approve(service, paid_booking, host)

    transfer = PendingTransfer.objects.get(booking_id=paid_booking.id)
    assert transfer.amount == Decimal("1800.00")
    assert transfer.account_ref == "host@example.com"
    assert transfer.status == PendingTransfer.Status.PENDING
    assert WalletLedger().balance(host.id) == Decimal("1800.00")


@pytest.mark.django_db
def test_dispatch_is_idempotent(service, paid_booking, host):
    booking = approve(service, paid_booking, host)
    dispatcher = PayoutDispatcher()

    again = dispatcher.dispatch(booking)

    assert again.idempotency_key == f"payout:{booking.id}"
    assert Transaction.objects.filter(type=Transaction.Type.PAYMENT_RECEIVED).count() == 1
    assert HostAccount.objects.get(host=host).total_earnings == Decimal("1800.00")


@pytest.mark.django_db
def test_unpaid_booking_cannot_be_dispatched(service, guest, villa):
    booking = service.create_booking(CreateBookingCommand(
        guest_id=guest.id, listing_id=villa.id, payment_timing="later",
    ))

    with pytest.raises(StateError):
        PayoutDispatcher().dispatch(booking)


@pytest.mark.django_db
def test_payout_method_rules(host):
    dispatcher = PayoutDispatcher()

    with pytest.raises(ValidationError):
        dispatcher.set_payout_method(host.id, "crypto", "x")
    with pytest.raises(ValidationError):
        dispatcher.set_payout_method(host.id, PayoutMethod.Type.BANK)

    dispatcher.set_payout_method(host.id, PayoutMethod.Type.WALLET)
    bank = dispatcher.set_payout_method(host.id, PayoutMethod.Type.BANK, "PH-123")

    assert dispatcher.default_method(host.id).pk == bank.pk
    assert PayoutMethod.objects.filter(host=host, is_default=True).count() == 1


# -- external settlement -------------------------------------------------------


@pytest.fixture
def transfer(service, paid_booking, host):
    PayoutDispatcher().set_payout_method(host.id, PayoutMethod.Type.PAYPAL, "host@example.com")
    approve(service, paid_booking, host)
    return PendingTransfer.objects.get(booking_id=paid_booking.id)


@pytest.mark.django_db
def test_successful_transfer_debits_host_wallet(transfer, host):
    client = FakePayoutClient("SUCCESS")

    counts = PayoutDispatcher().submit_pending_transfers(client)

    assert counts["completed"] == 1
    assert client.calls == [("host@example.com", Decimal("1800.00"), "PHP", f"transfer-{transfer.pk}")]
    transfer.refresh_from_db()
    assert transfer.status == PendingTransfer.Status.COMPLETED
    assert transfer.payout_batch_id == "BATCH-1"
    ledger = WalletLedger()
    assert ledger.balance(host.id) == Decimal("0.00")
    assert ledger.verify_conservation(host.id)
    assert PayoutDispatcher().submit_pending_transfers(client) == {
        "completed": 0, "submitted": 0, "failed": 0, "retry": 0,
    }


@pytest.mark.django_db
def test_pending_batch_is_submitted(transfer, host):
    counts = PayoutDispatcher().submit_pending_transfers(FakePayoutClient("PENDING"))

    assert counts["submitted"] == 1
    transfer.refresh_from_db()
    assert transfer.status == PendingTransfer.Status.SUBMITTED
    assert WalletLedger().balance(host.id) == Decimal("0.00")


@pytest.mark.django_db
def test_failed_batch_keeps_wallet(transfer, host):
    counts = PayoutDispatcher().submit_pending_transfers(FakePayoutClient("FAILED"))

    assert counts["failed"] == 1
    transfer.refresh_from_db()
    assert transfer.status == PendingTransfer.Status.FAILED
    assert WalletLedger().balance(host.id) == Decimal("1800.00")


@pytest.mark.django_db
def test_unavailable_api_leaves_transfer_pending(transfer, host):
    client = FakePayoutClient(error=ExternalServiceError("Payout API unavailable"))

    counts = PayoutDispatcher().submit_pending_transfers(client)

    assert counts["retry"] == 1
    transfer.refresh_from_db()
    assert transfer.status == PendingTransfer.Status.PENDING
    assert WalletLedger().balance(host.id) == Decimal("1800.00")


@pytest.mark.django_db
def test_transfer_larger_than_balance_fails(transfer, host):
    WalletLedger().debit(host.id, "100.00")
    client = FakePayoutClient()

    counts = PayoutDispatcher().submit_pending_transfers(client)

    assert counts["failed"] == 1
    assert client.calls == []


# -- milestone -----------------------------------------------------------------


@pytest.mark.django_db
def test_milestone_needs_a_completed_stay(host, paid_booking):
    assert PayoutDispatcher().award_first_stay_milestone(host.id, paid_booking.id) is None
    assert not HostAccount.objects.filter(host=host, first_stay_awarded=True).exists()


# -- client --------------------------------------------------------------------


def test_payout_client_normalizes_batch_status(settings):
    settings.PAYOUT_API_CLIENT_ID = "client"
    settings.PAYOUT_API_CLIENT_SECRET = "secret"
    session = mock.Mock(spec=requests.Session)
    token = mock.Mock(status_code=200, content=b"{}")
    token.json.return_value = {"access_token": "tok", "expires_in": 3600}
    batch = mock.Mock(status_code=201, content=b"{}")
    batch.json.return_value = {"batch_header": {"payout_batch_id": "B-9", "batch_status": "PROCESSING"}}
    session.request.side_effect = [token, batch]

    result = PayoutClient(session=session).submit_payout("host@example.com", Decimal("1800"), "PHP", reference="t-1")

    assert result == PayoutResult(payout_batch_id="B-9", status="PENDING", raw_status="PROCESSING")
    item = session.request.call_args.kwargs["json"]["items"][0]
    assert item["receiver"] == "host@example.com"
    assert item["amount"] == {"value": "1800.00", "currency": "PHP"}


def test_payout_client_emulates_in_debug_without_credentials(settings):
    settings.DEBUG = True
    settings.PAYOUT_API_CLIENT_ID = ""
    session = mock.Mock(spec=requests.Session)

    result = PayoutClient(session=session).submit_payout("host@example.com", Decimal("10"), "PHP")

    assert result.status == "SUCCESS"
    assert result.payout_batch_id.startswith("SANDBOX-")
    session.request.assert_not_called()


@pytest.mark.django_db
def test_periodic_task_with_nothing_pending():
    from apps.payouts.tasks import submit_pending_transfers

    assert submit_pending_transfers.apply().get() == {"completed": 0, "submitted": 0, "failed": 0, "retry": 0}

from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.utils import timezone

from apps.bookings.application.command_handlers import (
    ApproveBookingCommand,
    BookingWorkflowService,
    CreateBookingCommand,
    RejectBookingCommand,
)
from apps.bookings.domain.entities import BookingStatus, PaymentStatus
from apps.bookings.models import Booking as BookingModel
from apps.discounts.engine import DiscountEngine
from apps.discounts.models import DiscountRedemption
from apps.payments.gateway import SandboxGateway
from apps.payments.models import CaptureRecord, PaymentIntent, RefundRequest
from apps.payments.reconciler import PaymentReconciler
from apps.wallets.ledger import WalletLedger
from apps.wallets.models import Transaction
from shared.domain.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    PaymentMismatchError,
    StateError,
    ValidationError,
)


@pytest.fixture
def gateway():
    return SandboxGateway()


@pytest.fixture
def service(gateway):
    service = BookingWorkflowService()
    service.reconciler._gateway = gateway
    return service


@pytest.fixture
def reconciler(service):
    return service.reconciler


def external_booking(service, guest, listing, timing="now"):
    return service.create_booking(CreateBookingCommand(
        guest_id=guest.id,
        listing_id=listing.id,
        payment_method="external",
        payment_timing=timing,
        check_in=date(2026, 12, 1),
        check_out=date(2026, 12, 3),
    ))


@pytest.fixture
def booking(service, guest, villa):
    return external_booking(service, guest, villa)


# -- intents -------------------------------------------------------------------


@pytest.mark.django_db
def test_intent_uses_server_side_total(reconciler, booking):
    intent = reconciler.open_intent(booking.id)

    assert intent.amount == Decimal("1890.00")
    assert intent.currency == "PHP"
    assert intent.status == PaymentIntent.Status.OPEN
    assert intent.expires_at > timezone.now()


@pytest.mark.django_db
def test_intent_rejects_disagreeing_client_amount(reconciler, booking):
    with pytest.raises(ValidationError):
        reconciler.open_intent(booking.id, amount="1800.00")

    assert not PaymentIntent.objects.exists()


@pytest.mark.django_db
def test_open_intent_is_reused_until_it_expires(reconciler, booking):
    first = reconciler.open_intent(booking.id, amount="1890.00", currency="PHP")
    assert reconciler.open_intent(booking.id).pk == first.pk

    PaymentIntent.objects.filter(pk=first.pk).update(expires_at=timezone.now() - timedelta(minutes=1))
    second = reconciler.open_intent(booking.id)

    assert second.pk != first.pk
    first.refresh_from_db()
    assert first.status == PaymentIntent.Status.EXPIRED
    assert PaymentIntent.objects.filter(booking_id=booking.id, status=PaymentIntent.Status.OPEN).count() == 1


@pytest.mark.django_db
def test_intent_only_for_the_guest(reconciler, booking, host):
    with pytest.raises(AuthorizationError):
        reconciler.open_intent(booking.id, guest_id=host.id)


@pytest.mark.django_db
def test_wallet_booking_has_no_intent(reconciler, service, guest, villa):
    wallet_booking = service.create_booking(CreateBookingCommand(
        guest_id=guest.id, listing_id=villa.id, payment_timing="later",
    ))

    with pytest.raises(ValidationError):
        reconciler.open_intent(wallet_booking.id)


@pytest.mark.django_db
def test_gateway_failure_persists_nothing(booking):
    gateway = mock.Mock()
    gateway.create_order.side_effect = ExternalServiceError("PayPal unavailable")
    reconciler = PaymentReconciler(gateway=gateway)

    with pytest.raises(ExternalServiceError):
        reconciler.open_intent(booking.id)

    assert not PaymentIntent.objects.exists()


@pytest.mark.django_db
def test_expire_stale_intents(reconciler, booking):
    intent = reconciler.open_intent(booking.id)
    PaymentIntent.objects.filter(pk=intent.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

    assert reconciler.expire_stale_intents() == 1
    assert reconciler.expire_stale_intents() == 0
    intent.refresh_from_db()
    assert intent.status == PaymentIntent.Status.EXPIRED


# -- captures ------------------------------------------------------------------


@pytest.mark.django_db
def test_capture_within_tolerance_is_accepted(reconciler, booking, guest):
    intent = reconciler.open_intent(booking.id)

    record = reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.05", "PHP", {"payer_id": "P1"})

    assert record.outcome == CaptureRecord.Outcome.ACCEPTED
    row = BookingModel.objects.get(pk=booking.id)
    assert row.payment_status == PaymentStatus.COMPLETED.value
    assert row.capture_id == "CAP-1"
    assert row.status == BookingStatus.PENDING_APPROVAL.value
    intent.refresh_from_db()
    assert intent.status == PaymentIntent.Status.CAPTURED
    payment = Transaction.objects.get(booking_id=booking.id)
    assert payment.wallet_id is None
    assert payment.payment_method == Transaction.Method.EXTERNAL
    assert WalletLedger().balance(guest.id) == Decimal("0.00")


@pytest.mark.django_db
def test_duplicate_capture_is_a_no_op(reconciler, booking):
    intent = reconciler.open_intent(booking.id)

    first = reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.00", "PHP")
    second = reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.00", "PHP")

    assert first.pk == second.pk
    assert CaptureRecord.objects.count() == 1
    assert Transaction.objects.filter(booking_id=booking.id).count() == 1
    assert BookingModel.objects.get(pk=booking.id).version == 1


@pytest.mark.django_db
def test_capture_outside_tolerance_flags_booking(reconciler, booking):
    intent = reconciler.open_intent(booking.id)

    with pytest.raises(PaymentMismatchError) as exc_info:
        reconciler.confirm_capture(intent.intent_ref, "CAP-2", "1895.00", "PHP")

    assert exc_info.value.expected == Decimal("1890.00")
    assert exc_info.value.captured == Decimal("1895.00")
    row = BookingModel.objects.get(pk=booking.id)
    assert row.payment_status == PaymentStatus.PENDING.value
    assert row.status == BookingStatus.PENDING_APPROVAL.value
    assert row.needs_review
    assert CaptureRecord.objects.get(capture_id="CAP-2").outcome == CaptureRecord.Outcome.MISMATCH
    assert not Transaction.objects.exists()

    # Redelivery reports the same outcome without writing again
    with pytest.raises(PaymentMismatchError):
        reconciler.confirm_capture(intent.intent_ref, "CAP-2", "1895.00", "PHP")
    assert CaptureRecord.objects.count() == 1


@pytest.mark.django_db
def test_capture_in_other_currency_is_a_mismatch(reconciler, booking):
    intent = reconciler.open_intent(booking.id)

    with pytest.raises(PaymentMismatchError):
        reconciler.confirm_capture(intent.intent_ref, "CAP-3", "1890.00", "USD")


@pytest.mark.django_db
def test_second_capture_for_paid_booking_is_refused(reconciler, booking):
    intent = reconciler.open_intent(booking.id)
    reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.00", "PHP")

    with pytest.raises(StateError):
        reconciler.confirm_capture(intent.intent_ref, "CAP-9", "1890.00", "PHP")

    assert not CaptureRecord.objects.filter(capture_id="CAP-9").exists()


@pytest.mark.django_db
def test_capture_intent_through_gateway(reconciler, booking, guest):
    intent = reconciler.open_intent(booking.id)

    record = reconciler.capture_intent(intent.intent_ref, guest_id=guest.id)

    assert record.outcome == CaptureRecord.Outcome.ACCEPTED
    assert record.captured_amount == Decimal("1890.00")
    assert reconciler.capture_intent(intent.intent_ref).pk == record.pk


@pytest.mark.django_db
def test_expired_intent_cannot_be_captured(reconciler, booking):
    intent = reconciler.open_intent(booking.id)
    reconciler.expire_stale_intents(now=intent.expires_at + timedelta(seconds=1))

    with pytest.raises(StateError):
        reconciler.capture_intent(intent.intent_ref)


@pytest.mark.django_db
def test_pay_later_capture_after_approval_pays_host(service, reconciler, guest, host, villa):
    booking = external_booking(service, guest, villa, timing="later")
    service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))
    intent = reconciler.open_intent(booking.id)

    reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.00", "PHP")

    assert WalletLedger().balance(host.id) == Decimal("1800.00")


@pytest.mark.django_db
def test_capture_after_rejection_queues_refund(service, reconciler, booking, host):
    intent = reconciler.open_intent(booking.id)
    service.reject(RejectBookingCommand(booking_id=booking.id, host_id=host.id))

    reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.00", "PHP")

    refund = RefundRequest.objects.get(booking_id=booking.id)
    assert refund.status == RefundRequest.Status.PENDING
    assert refund.amount == Decimal("1890.00")
    assert WalletLedger().balance(host.id) == Decimal("0.00")


@pytest.mark.django_db
def test_capture_after_rejection_leaves_voucher_unused(service, reconciler, guest, host, villa):
    engine = DiscountEngine()
    voucher = engine.create_voucher(host.id, 10)
    engine.claim_voucher(voucher.id, guest.id)
    booking = service.create_booking(CreateBookingCommand(
        guest_id=guest.id,
        listing_id=villa.id,
        payment_method="external",
        check_in=date(2026, 12, 1),
        check_out=date(2026, 12, 3),
        voucher_code=voucher.code,
    ))
    intent = reconciler.open_intent(booking.id)
    service.reject(RejectBookingCommand(booking_id=booking.id, host_id=host.id))

    reconciler.confirm_capture(intent.intent_ref, "CAP-1", str(intent.amount), "PHP")

    voucher.refresh_from_db()
    assert voucher.usage_count == 0
    assert not voucher.is_used
    assert not DiscountRedemption.objects.filter(booking_id=booking.id).exists()
    assert RefundRequest.objects.get(booking_id=booking.id).amount == intent.amount

# -- refunds -------------------------------------------------------------------


@pytest.mark.django_db
def test_resolving_refund_credits_guest_once(service, reconciler, booking, guest, host, user_factory):
    operator = user_factory("ops", is_staff=True)
    intent = reconciler.open_intent(booking.id)
    service.reject(RejectBookingCommand(booking_id=booking.id, host_id=host.id))
    reconciler.confirm_capture(intent.intent_ref, "CAP-1", "1890.00", "PHP")
    refund = RefundRequest.objects.get(booking_id=booking.id)

    resolved = reconciler.resolve_refund(refund.pk, operator.id)

    assert resolved.status == RefundRequest.Status.RESOLVED
    assert resolved.transaction.type == Transaction.Type.REFUND
    ledger = WalletLedger()
    assert ledger.balance(guest.id) == Decimal("1890.00")
    assert ledger.verify_conservation(guest.id)
    with pytest.raises(StateError):
        reconciler.resolve_refund(refund.pk, operator.id)
    assert ledger.balance(guest.id) == Decimal("1890.00")


@pytest.mark.django_db
def test_dismissed_refund_moves_no_money(reconciler, booking, guest, user_factory):
    operator = user_factory("ops", is_staff=True)
    refund = reconciler.queue_refund(reconciler.store.get(booking.id), "Duplicate card charge")

    dismissed = reconciler.dismiss_refund(refund.pk, operator.id, "Refunded at the gateway")

    assert dismissed.status == RefundRequest.Status.DISMISSED
    assert WalletLedger().balance(guest.id) == Decimal("0.00")


@pytest.mark.django_db
def test_expire_task(reconciler, booking):
    from apps.payments.tasks import expire_stale_intents

    intent = reconciler.open_intent(booking.id)
    PaymentIntent.objects.filter(pk=intent.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

    assert expire_stale_intents.apply().get() == {"expired": 1}

from datetime import date
from decimal import Decimal

import pytest

from apps.bookings.application.command_handlers import (
    ApproveBookingCommand,
    ApproveCancellationCommand,
    BookingWorkflowService,
    CompleteStayCommand,
    CreateBookingCommand,
    PayWithWalletCommand,
    RejectBookingCommand,
    RejectCancellationCommand,
    RequestCancellationCommand,
    register_handlers,
)
from apps.bookings.domain.entities import BookingStatus, PaymentStatus, is_valid_path
from apps.bookings.domain.events import BookingRejected, HostMilestoneReached, PaymentCompleted
from apps.bookings.models import Booking as BookingModel
from apps.discounts.domain import DiscountRejected
from apps.discounts.engine import DiscountEngine
from apps.payments.models import RefundRequest
from apps.payouts.models import HostAccount
from apps.wallets.ledger import WalletLedger
from apps.wallets.models import Transaction
from shared.domain.exceptions import (
    AuthorizationError,
    InsufficientFundsError,
    StaleStateError,
    StateError,
    ValidationError,
)

CHECK_IN = date(2026, 12, 1)
CHECK_OUT = date(2026, 12, 3)


@pytest.fixture
def service():
    return BookingWorkflowService()


@pytest.fixture
def ledger():
    return WalletLedger()


def create(service, guest, listing, guests=1, **kwargs):
    return service.create_booking(CreateBookingCommand(
        guest_id=guest.id,
        listing_id=listing.id,
        check_in=CHECK_IN,
        check_out=CHECK_OUT,
        guests=guests,
        **kwargs,
    ))


@pytest.fixture
def paid_booking(service, ledger, guest, villa):
    ledger.top_up(guest.id, "1890.00", reference="bank-1")
    return create(service, guest, villa)


# -- creation and pricing ------------------------------------------------------


@pytest.mark.django_db
def test_voucher_booking_paid_from_wallet(service, ledger, guest, host, listing):
    """Subtotal 2000, voucher 10% -> discount 200, fee 90, total 1890."""
    engine = DiscountEngine()
    voucher = engine.create_voucher(host.id, 10)
    engine.claim_voucher(voucher.id, guest.id)
    ledger.top_up(guest.id, "1890.00", reference="bank-1")

    booking = create(service, guest, listing, guests=2, voucher_code=voucher.code)

    assert booking.pricing.subtotal.amount == Decimal("2000.00")
    assert booking.pricing.discount.amount == Decimal("200.00")
    assert booking.pricing.service_fee.amount == Decimal("90")
    assert booking.total.amount == Decimal("1890.00")
    assert booking.is_paid
    assert ledger.balance(guest.id) == Decimal("0.00")
    assert ledger.verify_conservation(guest.id)

    voucher.refresh_from_db()
    assert voucher.usage_count == 1
    assert voucher.is_used


@pytest.mark.django_db
def test_insufficient_funds_leaves_no_booking(service, ledger, guest, host, listing):
    engine = DiscountEngine()
    voucher = engine.create_voucher(host.id, 10)
    engine.claim_voucher(voucher.id, guest.id)
    ledger.top_up(guest.id, "1889.99", reference="bank-1")

    with pytest.raises(InsufficientFundsError):
        create(service, guest, listing, guests=2, voucher_code=voucher.code)

    assert not BookingModel.objects.exists()
    assert ledger.balance(guest.id) == Decimal("1889.99")
    voucher.refresh_from_db()
    assert voucher.usage_count == 0


@pytest.mark.django_db
def test_client_total_that_disagrees_is_rejected(service, guest, villa):
    with pytest.raises(ValidationError):
        create(service, guest, villa, payment_method="external", proposed_total=Decimal("1800.00"))

    assert not BookingModel.objects.exists()


@pytest.mark.django_db
def test_client_total_that_agrees_is_accepted(service, guest, villa):
    booking = create(service, guest, villa, payment_method="external", proposed_total=Decimal("1890.00"))

    assert booking.status == BookingStatus.PENDING_APPROVAL
    assert booking.payment_status == PaymentStatus.PENDING


@pytest.mark.django_db
def test_host_cannot_book_own_listing(service, host, villa):
    with pytest.raises(ValidationError):
        create(service, host, villa, payment_method="external")


@pytest.mark.django_db
def test_promo_code_and_voucher_together_are_rejected(service, guest, host, villa):
    engine = DiscountEngine()
    engine.create_coupon(host.id, "SAVE", "fixed", 100)
    voucher = engine.create_voucher(host.id, 10)
    engine.claim_voucher(voucher.id, guest.id)

    with pytest.raises(DiscountRejected) as exc_info:
        create(service, guest, villa, payment_method="external", promo_code="SAVE", voucher_code=voucher.code)

    assert exc_info.value.reason == "multiple_discounts"


@pytest.mark.django_db
def test_stored_amounts_satisfy_identity(service, guest, host, listing, villa):
    DiscountEngine().create_coupon(host.id, "FIXED", "fixed", "333.33")
    create(service, guest, villa, payment_method="external")
    create(service, guest, listing, guests=3, payment_method="external", promo_code="FIXED")
    create(service, guest, listing, guests=1, payment_method="external", payment_timing="later")

    for row in BookingModel.objects.all():
        assert row.total == row.subtotal - row.discount_amount + row.service_fee
        assert row.total > 0
        assert Decimal("0") <= row.discount_amount <= row.subtotal


# -- approval ------------------------------------------------------------------


@pytest.mark.django_db
def test_approving_paid_booking_credits_host_without_fee(service, ledger, guest, host, paid_booking):
    booking = service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=host.id))

    assert booking.status == BookingStatus.CONFIRMED
    assert ledger.balance(host.id) == Decimal("1800.00")
    assert HostAccount.objects.get(host=host).total_earnings == Decimal("1800.00")
    assert ledger.verify_conservation(host.id)
    assert ledger.verify_conservation(guest.id)


@pytest.mark.django_db
def test_pay_now_booking_cannot_be_approved_unpaid(service, guest, host, villa):
    booking = create(service, guest, villa, payment_method="external")

    with pytest.raises(StateError):
        service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))

    assert BookingModel.objects.get(pk=booking.id).status == BookingStatus.PENDING_APPROVAL.value


@pytest.mark.django_db
def test_only_the_host_can_approve(service, guest, paid_booking):
    with pytest.raises(AuthorizationError):
        service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=guest.id))


@pytest.mark.django_db
def test_concurrent_approvals_credit_host_once(service, ledger, host, paid_booking):
    stale = service.store.get(paid_booking.id)
    service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=host.id))

    # Second request read the booking before the first one wrote it
    service.store.get = lambda booking_id: stale
    with pytest.raises(StaleStateError):
        service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=host.id))

    assert ledger.balance(host.id) == Decimal("1800.00")
    assert Transaction.objects.filter(owner=host, type=Transaction.Type.PAYMENT_RECEIVED).count() == 1
    assert BookingModel.objects.get(pk=paid_booking.id).status == BookingStatus.CONFIRMED.value


@pytest.mark.django_db
def test_pay_later_wallet_payment_after_approval_pays_host(service, ledger, guest, host, villa):
    booking = create(service, guest, villa, payment_timing="later")
    assert booking.payment_status == PaymentStatus.SCHEDULED

    service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))
    assert ledger.balance(host.id) == Decimal("0.00")

    ledger.top_up(guest.id, "1890.00", reference="bank-1")
    paid = service.pay_with_wallet(PayWithWalletCommand(booking_id=booking.id, guest_id=guest.id))

    assert paid.is_paid
    assert paid.status == BookingStatus.CONFIRMED
    assert ledger.balance(host.id) == Decimal("1800.00")


# -- rejection and cancellation ------------------------------------------------


@pytest.mark.django_db
def test_rejecting_paid_booking_queues_refund(
    service, host, paid_booking, published_events, django_capture_on_commit_callbacks,
):
    with django_capture_on_commit_callbacks(execute=True):
        service.reject(RejectBookingCommand(booking_id=paid_booking.id, host_id=host.id, reason="Maintenance"))

    refund = RefundRequest.objects.get(booking_id=paid_booking.id)
    assert refund.amount == Decimal("1890.00")
    assert refund.status == RefundRequest.Status.PENDING
    rejected = [e for e in published_events if isinstance(e, BookingRejected)]
    assert len(rejected) == 1
    assert rejected[0].was_paid


@pytest.mark.django_db
def test_rejecting_unpaid_booking_queues_nothing(service, guest, host, villa):
    booking = create(service, guest, villa, payment_method="external")

    service.reject(RejectBookingCommand(booking_id=booking.id, host_id=host.id))

    assert not RefundRequest.objects.exists()


@pytest.mark.django_db
def test_rejected_cancellation_restores_confirmed(service, guest, host, paid_booking):
    booking_id = paid_booking.id
    service.approve(ApproveBookingCommand(booking_id=booking_id, host_id=host.id))

    requested = service.request_cancellation(
        RequestCancellationCommand(booking_id=booking_id, guest_id=guest.id, reason="Change of plans")
    )
    assert requested.status == BookingStatus.PENDING_CANCELLATION
    assert requested.previous_status == BookingStatus.CONFIRMED

    restored = service.reject_cancellation(RejectCancellationCommand(booking_id=booking_id, host_id=host.id))
    assert restored.status == BookingStatus.CONFIRMED
    assert restored.previous_status is None

    with pytest.raises(StateError):
        service.reject_cancellation(RejectCancellationCommand(booking_id=booking_id, host_id=host.id))

    history = service.store.history(booking_id)
    assert history == [
        BookingStatus.PENDING_APPROVAL,
        BookingStatus.CONFIRMED,
        BookingStatus.PENDING_CANCELLATION,
        BookingStatus.CONFIRMED,
    ]
    assert is_valid_path(history)
    assert not RefundRequest.objects.exists()


@pytest.mark.django_db
def test_payment_during_rejected_cancellation_pays_host(service, ledger, guest, host, villa):
    booking = create(service, guest, villa, payment_timing="later")
    service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))
    service.request_cancellation(RequestCancellationCommand(booking_id=booking.id, guest_id=guest.id))
    ledger.top_up(guest.id, "1890.00", reference="bank-1")

    paid = service.pay_with_wallet(PayWithWalletCommand(booking_id=booking.id, guest_id=guest.id))
    assert paid.status == BookingStatus.PENDING_CANCELLATION
    assert ledger.balance(host.id) == Decimal("0.00")

    restored = service.reject_cancellation(RejectCancellationCommand(booking_id=booking.id, host_id=host.id))

    assert restored.status == BookingStatus.CONFIRMED
    assert ledger.balance(host.id) == Decimal("1800.00")
    assert HostAccount.objects.get(host=host).total_earnings == Decimal("1800.00")


@pytest.mark.django_db
def test_payment_during_approved_cancellation_is_refunded(service, ledger, guest, host, villa):
    booking = create(service, guest, villa, payment_timing="later")
    service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))
    service.request_cancellation(RequestCancellationCommand(booking_id=booking.id, guest_id=guest.id))
    ledger.top_up(guest.id, "1890.00", reference="bank-1")
    service.pay_with_wallet(PayWithWalletCommand(booking_id=booking.id, guest_id=guest.id))

    service.approve_cancellation(ApproveCancellationCommand(booking_id=booking.id, host_id=host.id))

    assert RefundRequest.objects.get(booking_id=booking.id).amount == Decimal("1890.00")
    assert ledger.balance(host.id) == Decimal("0.00")

@pytest.mark.django_db
def test_approved_cancellation_of_paid_booking_queues_refund(service, guest, host, paid_booking):
    service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=host.id))
    service.request_cancellation(RequestCancellationCommand(booking_id=paid_booking.id, guest_id=guest.id))

    booking = service.approve_cancellation(ApproveCancellationCommand(booking_id=paid_booking.id, host_id=host.id))

    assert booking.status == BookingStatus.CANCELLED
    assert booking.is_terminal
    assert RefundRequest.objects.filter(booking_id=paid_booking.id).exists()


@pytest.mark.django_db
def test_only_the_guest_can_request_cancellation(service, host, paid_booking):
    service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=host.id))

    with pytest.raises(AuthorizationError):
        service.request_cancellation(RequestCancellationCommand(booking_id=paid_booking.id, guest_id=host.id))


# -- completion ----------------------------------------------------------------


@pytest.mark.django_db
def test_first_completed_stay_awards_milestone_once(
    service, ledger, guest, host, villa, published_events, django_capture_on_commit_callbacks,
):
    ledger.top_up(guest.id, "3780.00", reference="bank-1")
    first = create(service, guest, villa)
    second = create(service, guest, villa)
    for booking in (first, second):
        service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))

    with django_capture_on_commit_callbacks(execute=True):
        service.complete_stay(CompleteStayCommand(booking_id=first.id))
        service.complete_stay(CompleteStayCommand(booking_id=second.id))

    account = HostAccount.objects.get(host=host)
    assert account.reward_points == 100
    assert account.first_stay_awarded
    assert len([e for e in published_events if isinstance(e, HostMilestoneReached)]) == 1


@pytest.mark.django_db
def test_unpaid_completed_stay_is_flagged_for_review(service, guest, host, villa):
    booking = create(service, guest, villa, payment_timing="later")
    service.approve(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))

    completed = service.complete_stay(CompleteStayCommand(booking_id=booking.id))

    assert completed.status == BookingStatus.COMPLETED
    row = BookingModel.objects.get(pk=booking.id)
    assert row.needs_review
    assert row.review_reason == "Stay completed with payment outstanding"


@pytest.mark.django_db
def test_paid_completed_stay_is_not_flagged(service, host, paid_booking):
    service.approve(ApproveBookingCommand(booking_id=paid_booking.id, host_id=host.id))

    service.complete_stay(CompleteStayCommand(booking_id=paid_booking.id))

    assert not BookingModel.objects.get(pk=paid_booking.id).needs_review

@pytest.mark.django_db
def test_pending_booking_cannot_be_completed(service, guest, villa):
    booking = create(service, guest, villa, payment_method="external")

    with pytest.raises(StateError):
        service.complete_stay(CompleteStayCommand(booking_id=booking.id))


@pytest.mark.django_db
def test_events_are_published_only_after_commit(
    service, ledger, guest, villa, published_events, django_capture_on_commit_callbacks,
):
    ledger.top_up(guest.id, "1890.00", reference="bank-1")

    with django_capture_on_commit_callbacks(execute=False) as callbacks:
        create(service, guest, villa)
    assert published_events == []

    for callback in callbacks:
        callback()
    assert any(isinstance(e, PaymentCompleted) for e in published_events)


@pytest.mark.django_db
def test_stale_unpaid_bookings_are_reported_not_cancelled(service, guest, villa):
    from datetime import timedelta

    from django.utils import timezone

    from apps.bookings.tasks import report_stale_unpaid_bookings

    booking = create(service, guest, villa, payment_method="external")
    create(service, guest, villa, payment_method="external")
    BookingModel.objects.filter(pk=booking.id).update(created_at=timezone.now() - timedelta(days=3))

    assert report_stale_unpaid_bookings.apply().get() == {"stale": 1}
    assert BookingModel.objects.get(pk=booking.id).status == BookingStatus.PENDING_APPROVAL.value


# -- command dispatch ----------------------------------------------------------


@pytest.mark.django_db
def test_commands_dispatch_through_the_message_bus(service, ledger, guest, host, villa):
    from shared.application.message_bus import MessageBus

    bus = MessageBus()
    register_handlers(bus=bus, service=service)
    ledger.top_up(guest.id, "1890.00", reference="bank-1")

    booking = bus.handle_command(CreateBookingCommand(
        guest_id=guest.id, listing_id=villa.id, check_in=CHECK_IN, check_out=CHECK_OUT,
    ))
    approved = bus.handle_command(ApproveBookingCommand(booking_id=booking.id, host_id=host.id))

    assert approved.status == BookingStatus.CONFIRMED
    assert BookingModel.objects.get(pk=booking.id).status == BookingStatus.CONFIRMED.value
    assert ledger.balance(host.id) == Decimal("1800.00")
    with pytest.raises(AuthorizationError):
        bus.handle_command(RejectBookingCommand(booking_id=booking.id, host_id=guest.id))

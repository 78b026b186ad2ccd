"""API views for the booking domain."""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.payments.serializers import PaymentIntentSerializer
from shared.application.message_bus import message_bus

from .application.command_handlers import (
    ApproveBookingCommand,
    ApproveCancellationCommand,
    CreateBookingCommand,
    PayWithWalletCommand,
    RejectBookingCommand,
    RejectCancellationCommand,
    RequestCancellationCommand,
    StartExternalPaymentCommand,
)
from .filters import BookingFilter
from .models import Booking, BookingStatusChange
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusChangeSerializer,
    ProposedAmountSerializer,
    ReasonSerializer,
)


class BookingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Bookings of the authenticated user, as guest or as host.

    Every state change is a command on the message bus; who may do what
    is decided by the Booking aggregate, not by this view.
    """

    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = "[0-9a-fA-F-]{36}"
    filter_backends = [DjangoFilterBackend]
    filterset_class = BookingFilter

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = Booking.objects.select_related("listing")
        if user.is_staff:
            return qs
        return qs.filter(Q(guest=user) | Q(host=user))

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return BookingCreateSerializer
        return BookingSerializer

    def _respond(self, booking, http_status=status.HTTP_200_OK):
        row = Booking.objects.get(pk=booking.id)
        return Response(BookingSerializer(row).data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = message_bus.handle_command(CreateBookingCommand(
            guest_id=request.user.id,
            listing_id=data["listing"],
            payment_method=data["payment_method"],
            payment_timing=data["payment_timing"],
            check_in=data.get("check_in"),
            check_out=data.get("check_out"),
            guests=data["guests"],
            promo_code=data["promo_code"],
            voucher_code=data["voucher_code"],
            message_to_host=data["message_to_host"],
            proposed_total=data.get("total"),
        ))
        return self._respond(booking, status.HTTP_201_CREATED)

    # ----- Host -----

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):  # type: ignore
        booking = message_bus.handle_command(ApproveBookingCommand(booking_id=pk, host_id=request.user.id))
        return self._respond(booking)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):  # type: ignore
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = message_bus.handle_command(RejectBookingCommand(
            booking_id=pk, host_id=request.user.id, reason=serializer.validated_data["reason"],
        ))
        return self._respond(booking)

    @action(detail=True, methods=["post"], url_path="approve-cancellation")
    def approve_cancellation(self, request, pk=None):  # type: ignore
        booking = message_bus.handle_command(
            ApproveCancellationCommand(booking_id=pk, host_id=request.user.id)
        )
        return self._respond(booking)

    @action(detail=True, methods=["post"], url_path="reject-cancellation")
    def reject_cancellation(self, request, pk=None):  # type: ignore
        booking = message_bus.handle_command(
            RejectCancellationCommand(booking_id=pk, host_id=request.user.id)
        )
        return self._respond(booking)

    # ----- Guest -----

    @action(detail=True, methods=["post"], url_path="request-cancellation")
    def request_cancellation(self, request, pk=None):  # type: ignore
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = message_bus.handle_command(RequestCancellationCommand(
            booking_id=pk, guest_id=request.user.id, reason=serializer.validated_data["reason"],
        ))
        return self._respond(booking)

    @action(detail=True, methods=["post"], url_path="pay-wallet")
    def pay_wallet(self, request, pk=None):  # type: ignore
        serializer = ProposedAmountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = message_bus.handle_command(PayWithWalletCommand(
            booking_id=pk, guest_id=request.user.id, amount=serializer.validated_data.get("amount"),
        ))
        return self._respond(booking)

    @action(detail=True, methods=["post"], url_path="payment-intent")
    def payment_intent(self, request, pk=None):  # type: ignore
        serializer = ProposedAmountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        intent = message_bus.handle_command(StartExternalPaymentCommand(
            booking_id=pk,
            guest_id=request.user.id,
            amount=serializer.validated_data.get("amount"),
            currency=serializer.validated_data.get("currency"),
        ))
        return Response(PaymentIntentSerializer(intent).data, status=status.HTTP_201_CREATED)

    # ----- Audit -----

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        changes = BookingStatusChange.objects.filter(booking=booking)
        return Response(BookingStatusChangeSerializer(changes, many=True).data)

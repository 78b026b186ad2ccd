"""API views for the current user's wallet."""

from __future__ import annotations

import logging

from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import generics, permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .filters import TransactionFilter
from .ledger import WalletLedger
from .serializers import TopUpSerializer, TransactionSerializer, WalletSerializer

logger = logging.getLogger(__name__)


class MyWalletView(APIView):
    """Balance of the authenticated user's wallet."""

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):  # type: ignore
        wallet = WalletLedger().get_wallet(request.user.id)
        return Response(WalletSerializer(wallet).data)


class MyTransactionsView(generics.ListAPIView):
    """Transaction log of the authenticated user, newest first."""

    serializer_class = TransactionSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = TransactionFilter

    def get_queryset(self):  # type: ignore
        return WalletLedger().transactions(self.request.user.id)


class TopUpView(APIView):
    """Credit a wallet for funds received outside the platform (operators only)."""

    permission_classes = [permissions.IsAdminUser]

    def post(self, request):  # type: ignore
        serializer = TopUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        entry = WalletLedger().top_up(data["owner"], data["amount"], data["reference"])
        logger.info(f"Top-up {entry.amount} for user {data['owner']} by operator {request.user.id}")
        return Response(TransactionSerializer(entry).data, status=status.HTTP_201_CREATED)

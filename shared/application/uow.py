"""
Unit of Work Pattern

Wraps one logical marketplace operation (e.g. "approve booking with
completed payment => transition + host credit + ledger entry") in a single
database transaction, and publishes the domain events it produced only
after that transaction commits.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""

    @abstractmethod
    def collect_events(self, aggregate):
        """Collect events from aggregate root"""


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Every write performed inside the ``with`` block (booking CAS update,
    wallet row update, transaction-log insert...) commits together or not at
    all. Nested units become savepoints of the outer one, so a service may
    call another service that opens its own unit.

    Usage:
        with DjangoUnitOfWork() as uow:
            booking = bookings.get(booking_id)
            booking.approve(actor_id)
            bookings.save(booking)
            dispatcher.dispatch(booking)
            uow.collect_events(booking)
        # Events are published after commit
    """

    def __init__(self, using: str | None = None):
        self._events: List[DomainEvent] = []
        self._atomic = None
        self._using = using

    def __enter__(self):
        """Start database transaction"""
        self._atomic = transaction.atomic(using=self._using)
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._atomic:
                self._atomic.__exit__(exc_type, exc_val, exc_tb)
        return False

    def commit(self):
        """
        Schedule event publishing for after the outermost commit.

        ``transaction.on_commit`` runs the callback only if the whole
        transaction (including any enclosing unit) commits.
        """
        events = self._events.copy()
        self._events.clear()
        logger.debug(f"Committing unit of work with {len(events)} events")

        if events:
            transaction.on_commit(lambda: self._publish_events(events), using=self._using)

    def rollback(self):
        """Rollback changes and discard events"""
        if self._events:
            logger.warning(f"Rolling back unit of work, discarding {len(self._events)} events")
        self._events.clear()

    def collect_events(self, aggregate):
        """Move pending events from the aggregate into this unit"""
        new_events = getattr(aggregate, 'events', None)
        if new_events:
            self._events.extend(new_events)
            aggregate.clear_events()
            logger.debug(
                f"Collected {len(new_events)} events from "
                f"{aggregate.__class__.__name__} (ID: {aggregate.id})"
            )

    def add_event(self, event: DomainEvent):
        """Record an event that has no aggregate behind it"""
        self._events.append(event)

    def _publish_events(self, events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        logger.info(f"Publishing {len(events)} domain events after commit")
        message_bus.publish_events(events)

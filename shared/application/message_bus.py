"""
Message Bus

Routes booking commands to the workflow service and fans domain events out
to subscribers (notification senders, audit log, analytics) that live
outside the core.
"""

from typing import Callable, Dict, List, Type, Any
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class MessageBus:
    """
    Message bus for commands and events

    Commands: One handler per command (1:1)
    Events: Multiple handlers per event (1:N)
    """

    def __init__(self):
        self._event_handlers: Dict[Type[DomainEvent], List[Callable]] = {}
        self._command_handlers: Dict[Type, Callable] = {}

    def register_event_handler(
        self,
        event_type: Type[DomainEvent],
        handler: Callable[[DomainEvent], None]
    ):
        """Subscribe ``handler`` to ``event_type``; registering twice is a no-op"""
        handlers = self._event_handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug(f"Registered event handler for {event_type.__name__}")

    def subscribe(self, *event_types: Type[DomainEvent]):
        """Decorator form of ``register_event_handler``"""
        def decorator(handler):
            for event_type in event_types:
                self.register_event_handler(event_type, handler)
            return handler
        return decorator

    def register_command_handler(
        self,
        command_type: Type,
        handler: Callable[[Any], Any],
        *,
        replace: bool = False,
    ):
        """
        Register a command handler

        Only one handler can be registered per command type.
        """
        if command_type in self._command_handlers and not replace:
            raise ValueError(
                f"Handler for {command_type.__name__} is already registered. "
                "Commands can have only one handler."
            )
        self._command_handlers[command_type] = handler
        logger.debug(f"Registered command handler for {command_type.__name__}")

    def handle_command(self, command: Any) -> Any:
        """
        Handle a command

        Returns the result from the command handler. Domain errors raised by
        the handler propagate unchanged to the caller.
        """
        command_type = type(command)
        handler = self._command_handlers.get(command_type)

        if not handler:
            raise ValueError(
                f"No handler registered for command {command_type.__name__}"
            )

        logger.info(f"Handling command: {command_type.__name__}")
        try:
            return handler(command)
        except Exception as e:
            logger.warning(f"Command {command_type.__name__} failed: {e}")
            raise

    def publish_events(self, events: List[DomainEvent]):
        """
        Publish domain events

        All registered handlers for each event type will be called.
        Errors in handlers are logged but don't stop other handlers: the
        transaction that produced the events is already committed.
        """
        for event in events:
            event_type = type(event)
            handlers = self._event_handlers.get(event_type, [])

            if not handlers:
                logger.debug(f"No handlers registered for event {event_type.__name__}")
                continue

            logger.info(f"Publishing event: {event_type.__name__} (ID: {event.event_id})")

            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        f"Error in event handler {getattr(handler, '__name__', handler)} "
                        f"for event {event_type.__name__}: {e}",
                        exc_info=True
                    )


# Global message bus instance
message_bus = MessageBus()

from django.apps import AppConfig


class BookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.bookings"

    def ready(self) -> None:
        from .application import event_handlers  # noqa: F401
        from .application.command_handlers import register_handlers

        register_handlers()

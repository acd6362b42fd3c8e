from __future__ import annotations

from django.apps import AppConfig


class CascadeConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "dc_core.cascade"

    def ready(self) -> None:
        from dc_core.cascade.hooks import bind_cascade_hooks

        # raises ImproperlyConfigured on a bad DC_CASCADE_DEPENDENCIES
        bind_cascade_hooks()

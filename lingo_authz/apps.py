"""
Django app configuration for lingo-authz.

On startup this loads ``roles.json`` role definitions from installed apps
into the role rule catalog.
"""

import logging

from django.apps import AppConfig as BaseAppConfig

logger = logging.getLogger(__name__)


class AppConfig(BaseAppConfig):
    """Django app configuration for lingo-authz."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "lingo_authz"
    verbose_name = "Lingo Authorization"
    label = "lingo_authz"

    def ready(self):
        """Initialize the application after Django has loaded."""
        self._load_role_files()

    def _load_role_files(self):
        """Load roles.json definitions from installed apps."""
        from .config_proxy import get_authorization_setting

        if not get_authorization_setting("load_role_files", True):
            return
        try:
            from .security.role_loader import load_app_role_definitions

            registered_count = load_app_role_definitions()
            if registered_count:
                logger.info("Registered %s roles from roles.json files", registered_count)
        except Exception as exc:
            logger.warning("Could not load role definitions: %s", exc)
            if self._is_debug_mode():
                raise

    def _is_debug_mode(self):
        from django.conf import settings as django_settings

        return getattr(django_settings, "DEBUG", False)

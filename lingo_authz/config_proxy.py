"""
Configuration management for lingo-authz.

This module provides a settings proxy that resolves configuration from
runtime overrides, the Django ``LINGO_AUTHZ`` setting and library defaults.
"""

from typing import Any, Optional

from django.conf import settings

from .defaults import LIBRARY_DEFAULTS

_MISSING = object()

# Runtime overrides (avoids modifying Django settings)
_RUNTIME_SETTINGS: dict[str, Any] = {}


class SettingsProxy:
    """
    Proxy for accessing lingo-authz settings with hierarchical resolution.

    Settings are resolved in the following order:
    1. Runtime overrides (via configure_runtime_settings)
    2. Global Django settings (LINGO_AUTHZ)
    3. Library defaults (LIBRARY_DEFAULTS)

    An explicit ``None`` in a higher layer wins over lower layers, so a project
    can switch off an optional collaborator such as the policy store.
    """

    def __init__(self, settings_name: str = "LINGO_AUTHZ"):
        self.settings_name = settings_name

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value with hierarchical resolution.

        Args:
            key: Dotted setting key (e.g. ``authorization_settings.policy_page_size``)
            default: Value returned when no layer defines the key

        Returns:
            The setting value from the highest priority source
        """
        for layer in (
            _RUNTIME_SETTINGS,
            getattr(settings, self.settings_name, None) or {},
            LIBRARY_DEFAULTS,
        ):
            value = self._get_nested_value(layer, key)
            if value is not _MISSING:
                return value
        return default

    def _get_nested_value(self, data: dict[str, Any], key: str) -> Any:
        """
        Get nested value from dictionary using dot notation.

        Returns ``_MISSING`` when any path segment is absent.
        """
        if not isinstance(data, dict):
            return _MISSING

        current: Any = data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return _MISSING
            current = current[part]
        return current

    def set(self, key: str, value: Any) -> None:
        """Set a runtime override (process local, not persistent)."""
        _set_nested_value(_RUNTIME_SETTINGS, key, value)


def _set_nested_value(data: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


settings_proxy = SettingsProxy()


def get_setting(key: str, default: Any = None) -> Any:
    """
    Get a setting value using the hierarchical settings system.

    Args:
        key: Dotted setting key
        default: Default value if setting is not found

    Returns:
        The setting value from the highest priority source
    """
    return settings_proxy.get(key, default)


def get_authorization_setting(name: str, default: Any = None) -> Any:
    """Shortcut for keys of the ``authorization_settings`` section."""
    return get_setting(f"authorization_settings.{name}", default)


def configure_runtime_settings(**overrides: Any) -> None:
    """
    Apply runtime overrides.

    Keys use double underscores for nesting, e.g.
    ``configure_runtime_settings(authorization_settings__policy_store=None)``.
    """
    for key, value in overrides.items():
        _set_nested_value(_RUNTIME_SETTINGS, key.replace("__", "."), value)


def clear_runtime_settings(key: Optional[str] = None) -> None:
    """Clear runtime overrides, either one dotted key or all of them."""
    if key is None:
        _RUNTIME_SETTINGS.clear()
        return
    parts = key.split(".")
    current: Any = _RUNTIME_SETTINGS
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)

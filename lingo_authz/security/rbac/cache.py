"""
Ability cache.

Memoizes compiled abilities per (user_id, tenant_id, sorted roles) with a TTL.
Expired entries are swept in bulk once the cache grows past a threshold.
Entries compiled against an older version of the role catalog are stale.
Concurrent callers may compile the same key twice; compilation is pure, so
the last write simply wins.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from lingo_authz.config_proxy import get_authorization_setting

from .ability import CompiledAbility, compile_ability
from .catalog import RoleRuleCatalog, role_catalog
from .types import UserContext

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, tuple[str, ...]]


@dataclass(frozen=True)
class CacheEntry:
    ability: CompiledAbility
    compiled_at: float
    catalog_version: int = 0


class AbilityCache:
    """TTL cache of compiled abilities."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        sweep_threshold: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        compiler: Callable[..., CompiledAbility] = compile_ability,
        catalog: Optional[RoleRuleCatalog] = None,
    ):
        if ttl_seconds is None:
            ttl_seconds = get_authorization_setting("ability_cache_ttl_seconds", 300)
        if sweep_threshold is None:
            sweep_threshold = get_authorization_setting("ability_cache_sweep_threshold", 100)
        self.ttl_seconds = float(ttl_seconds)
        self.sweep_threshold = int(sweep_threshold)
        self._clock = clock
        self._compiler = compiler
        self._catalog = catalog
        self._entries: dict[CacheKey, CacheEntry] = {}
        self.compile_count = 0

    @property
    def catalog(self) -> RoleRuleCatalog:
        return self._catalog if self._catalog is not None else role_catalog

    @staticmethod
    def make_key(user_id: Optional[str], tenant_id: Optional[str], roles) -> CacheKey:
        return (
            "" if user_id is None else str(user_id),
            "" if tenant_id is None else str(tenant_id),
            tuple(sorted(roles or ())),
        )

    def get_ability(self, user: UserContext) -> CompiledAbility:
        """Return the cached ability for ``user``, compiling it when missing or stale."""
        return self.get(user.user_id, user.tenant_id, user.roles)

    def get(self, user_id: Optional[str], tenant_id: Optional[str], roles) -> CompiledAbility:
        key = self.make_key(user_id, tenant_id, roles)
        now = self._clock()
        version = self.catalog.get_version()
        entry = self._entries.get(key)
        if (
            entry is not None
            and entry.catalog_version == version
            and now - entry.compiled_at < self.ttl_seconds
        ):
            return entry.ability

        if len(self._entries) > self.sweep_threshold:
            self.sweep(now)

        if self._catalog is not None:
            ability = self._compiler(list(roles or ()), user_id, tenant_id, catalog=self._catalog)
        else:
            ability = self._compiler(list(roles or ()), user_id, tenant_id)
        self.compile_count += 1
        self._entries[key] = CacheEntry(ability=ability, compiled_at=now, catalog_version=version)
        return ability

    def sweep(self, now: Optional[float] = None) -> int:
        """Remove every expired entry. Returns the number removed."""
        if now is None:
            now = self._clock()
        expired = [
            key
            for key, entry in list(self._entries.items())
            if now - entry.compiled_at >= self.ttl_seconds
        ]
        for key in expired:
            self._entries.pop(key, None)
        if expired:
            logger.debug("Swept %s expired abilities", len(expired))
        return len(expired)

    def invalidate_user(self, user_id: str) -> int:
        """Drop every entry of one user (e.g. after a role change)."""
        user_key = str(user_id)
        keys = [key for key in list(self._entries) if key[0] == user_key]
        for key in keys:
            self._entries.pop(key, None)
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


_default_cache: Optional[AbilityCache] = None


def get_ability_cache() -> AbilityCache:
    """Get or create the process-wide ability cache."""
    global _default_cache
    if _default_cache is None:
        _default_cache = AbilityCache()
    return _default_cache


def reset_ability_cache() -> None:
    """Drop the process-wide cache so the next call rebuilds it from settings."""
    global _default_cache
    _default_cache = None


__all__ = ["AbilityCache", "CacheEntry", "get_ability_cache", "reset_ability_cache"]

"""Holds the current policy snapshot and mediates writes to the option store."""

from __future__ import annotations

from typing import Any

import structlog

from csp_manager.config.defaults import DEFAULT_OPTIONS
from csp_manager.config.loader import get_settings
from csp_manager.policy.dispatcher import PolicySnapshot
from csp_manager.policy.model import PolicyContext, PolicyModel, load
from csp_manager.store.options import OptionsStore

logger = structlog.get_logger()


class PolicyService:
    """Loads policy snapshots from an :class:`OptionsStore`.

    Snapshots are immutable; a reload or save swaps in a new one, so requests
    already holding the previous snapshot are unaffected.
    """

    def __init__(self, store: OptionsStore) -> None:
        self._store = store
        self._snapshot = PolicySnapshot()

    @property
    def store(self) -> OptionsStore:
        return self._store

    def activate(self) -> list[str]:
        """Seed default records for contexts that have none, then load."""
        added = self._store.ensure_defaults(DEFAULT_OPTIONS)
        self.reload()
        return added

    def reload(self) -> PolicySnapshot:
        self._snapshot = self._store.load_snapshot()
        return self._snapshot

    def get_snapshot(self) -> PolicySnapshot:
        return self._snapshot

    def get_model(self, context: PolicyContext) -> PolicyModel | None:
        return self._snapshot.get(context)

    def save_record(self, context: PolicyContext, record: dict[str, Any]) -> PolicyModel:
        """Persist *record* for *context* and return the model it loads as."""
        self._store.update_option(context.option_name, record)
        self.reload()
        logger.info("csp_policy_saved", context=context.value)
        return self._snapshot.get(context) or load(context, record)


_service: PolicyService | None = None


def get_policy_service() -> PolicyService:
    """Get or create the singleton service backed by the configured options file."""
    global _service
    if _service is None:
        _service = PolicyService(OptionsStore(get_settings().options_file))
    return _service


def reset_policy_service() -> None:
    """Drop the singleton (for testing and settings reloads)."""
    global _service
    _service = None


def reload_policy_service() -> PolicyService:
    """Build a service from the current settings and make it live once it has loaded.

    If the options file cannot be read the error propagates and the previous
    service, with its snapshot, stays in place.
    """
    global _service
    service = PolicyService(OptionsStore(get_settings().options_file))
    service.reload()
    _service = service
    return service

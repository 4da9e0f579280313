"""YAML-file key-value option store holding the per-context policy records."""

from __future__ import annotations

import os
import tempfile
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml

from csp_manager.policy.dispatcher import PolicySnapshot, load_snapshot

logger = structlog.get_logger()


class OptionsStoreError(Exception):
    """Raised when the options file cannot be read or written."""


def _plain(value: Any) -> Any:
    """Convert read-only mappings to dicts so yaml.safe_dump accepts them."""
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class OptionsStore:
    """Options persisted as a single YAML mapping of ``{name: value}``.

    Every read goes to disk so several processes can share one file; writes
    replace the file atomically.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise OptionsStoreError(f"cannot read {self._path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise OptionsStoreError(f"{self._path} does not contain a mapping")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=True, allow_unicode=True)
            os.replace(tmp, self._path)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise OptionsStoreError(f"cannot write {self._path}: {exc}") from exc

    def all_options(self) -> dict[str, Any]:
        return self._read()

    def get_option(self, name: str, default: Any = None) -> Any:
        return self._read().get(name, default)

    def update_option(self, name: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[name] = _plain(value)
            self._write(data)
        logger.info("csp_option_saved", option=name)

    def ensure_defaults(self, defaults: Mapping[str, Any]) -> list[str]:
        """Store each default whose option is missing; return the names added."""
        with self._lock:
            data = self._read()
            added = [name for name in defaults if name not in data]
            if not added:
                return []
            for name in added:
                data[name] = _plain(defaults[name])
            self._write(data)
        logger.info("csp_defaults_seeded", options=added)
        return added

    def load_snapshot(self) -> PolicySnapshot:
        """Read every context's record into a fresh immutable snapshot."""
        snapshot = load_snapshot(self._read())
        logger.info("csp_snapshot_loaded", contexts=sorted(ctx.value for ctx in snapshot))
        return snapshot

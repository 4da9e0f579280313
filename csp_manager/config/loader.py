"""Env var config loading with pydantic-settings."""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class CSPSettings(BaseSettings):
    """Process configuration, overridable through ``CSP_*`` env vars."""

    model_config = SettingsConfigDict(
        env_prefix="CSP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # YAML file backing the option store
    options_file: str = "csp_options.yaml"
    log_level: str = "info"
    log_json: bool = True
    # Bearer key for the settings API; empty disables the API
    api_key: str = ""

    # Request classification
    admin_path_prefix: str = "/wp-admin"
    logged_in_cookie_prefix: str = "wordpress_logged_in"


_settings: CSPSettings | None = None


def get_settings() -> CSPSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings() -> CSPSettings:
    """Load settings from env vars (env vars override model defaults)."""
    global _settings
    _settings = CSPSettings()
    logger.info("config_loaded", options_file=_settings.options_file)
    return _settings


def register_reload_handler(on_reload: Callable[[], None] | None = None) -> None:
    """Register a SIGHUP handler that reloads settings, then calls *on_reload*."""
    if threading.current_thread() is not threading.main_thread():
        logger.debug("skipping_sighup_handler", reason="not main thread")
        return

    def _reload(signum, frame):
        logger.info("config_reload_triggered")
        load_settings()
        if on_reload is not None:
            try:
                on_reload()
            except Exception:
                logger.exception("config_reload_failed")

    try:
        signal.signal(signal.SIGHUP, _reload)
    except (ValueError, AttributeError):
        # AttributeError: no SIGHUP on this platform
        logger.debug("skipping_sighup_handler", reason="signal not supported")

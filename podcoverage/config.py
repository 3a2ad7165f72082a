"""Process-wide coverage configuration.

A ``CoverageConfig`` is built once before traffic starts and handed to the
service, collector and broadcaster. The module keeps one default instance for
the package-level setters (``set_number_pods``, ``set_logger``), mirroring how
a service is usually wired: configure at import/startup, then serve.

Environment Variables:
    PODCOVERAGE_CONFIG: YAML file with the keys below (lower-case, no prefix)
    PODCOVERAGE_NUMBER_PODS: Expected replica count (default: 1)
    PODCOVERAGE_REQUEST_TIMEOUT_SEC: Per-request peer timeout (default: 3)
    PODCOVERAGE_OVERALL_TIMEOUT_SEC: Budget for one collection (default: 15)
    PODCOVERAGE_TOOL_TIMEOUT_SEC: Coverage tool subprocess timeout (default: 120)
    PODCOVERAGE_PEER_URLS: Comma-separated replica base URLs, polled instead
        of the load-balanced entry URL when set
    PODCOVERAGE_BASE_URL: Scheme/host used for peer URLs instead of the
        inbound request's
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigurationError
from .identity import get_identity
from .logging_config import CoverageLogger, get_default_logger

CONFIG_FILE_ENV = "PODCOVERAGE_CONFIG"
ENV_PREFIX = "PODCOVERAGE_"

DEFAULT_NUMBER_PODS = 1
DEFAULT_REQUEST_TIMEOUT_SEC = 3.0
DEFAULT_OVERALL_TIMEOUT_SEC = 15.0
DEFAULT_TOOL_TIMEOUT_SEC = 120.0

_ENV_KEYS = {
    "number_pods": "NUMBER_PODS",
    "request_timeout": "REQUEST_TIMEOUT_SEC",
    "overall_timeout": "OVERALL_TIMEOUT_SEC",
    "tool_timeout": "TOOL_TIMEOUT_SEC",
    "peer_urls": "PEER_URLS",
    "base_url": "BASE_URL",
}


@dataclass(frozen=True)
class CoverageConfig:
    number_pods: int = DEFAULT_NUMBER_PODS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC
    overall_timeout: float = DEFAULT_OVERALL_TIMEOUT_SEC
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT_SEC
    peer_urls: tuple[str, ...] = ()
    base_url: str | None = None
    identity: str = field(default_factory=get_identity)
    logger: CoverageLogger = field(default_factory=get_default_logger, compare=False)

    def validate(self) -> CoverageConfig:
        if self.number_pods < 1:
            raise ConfigurationError(
                "number of pods must be at least 1",
                context={"number_pods": self.number_pods},
            )
        for name in ("request_timeout", "overall_timeout", "tool_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(
                    f"{name} must be positive", context={name: value}
                )
        if not self.identity:
            raise ConfigurationError("instance identity must not be empty")
        return self

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], **overrides: Any) -> CoverageConfig:
        """Build a config from loosely typed values (env strings, YAML scalars)."""
        kwargs: dict[str, Any] = {}
        try:
            if values.get("number_pods") not in (None, ""):
                kwargs["number_pods"] = int(values["number_pods"])
            for name in ("request_timeout", "overall_timeout", "tool_timeout"):
                if values.get(name) not in (None, ""):
                    kwargs[name] = float(values[name])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid configuration value: {e}") from e

        peer_urls = values.get("peer_urls")
        if isinstance(peer_urls, str):
            peer_urls = peer_urls.split(",")
        if peer_urls:
            kwargs["peer_urls"] = tuple(u.strip() for u in peer_urls if u and u.strip())

        base_url = values.get("base_url")
        if base_url:
            kwargs["base_url"] = str(base_url).rstrip("/")

        kwargs.update(overrides)
        return cls(**kwargs).validate()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> CoverageConfig:
        environ = os.environ if environ is None else environ
        values = {
            name: environ.get(ENV_PREFIX + suffix)
            for name, suffix in _ENV_KEYS.items()
        }
        return cls.from_mapping(values, **overrides)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> CoverageConfig:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(
                f"cannot read config file: {e}", context={"path": str(path)}
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"invalid YAML in config file: {e}", context={"path": str(path)}
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                "config file must contain a mapping", context={"path": str(path)}
            )
        return cls.from_mapping(data.get("coverage", data), **overrides)


_config_lock = threading.Lock()
_default_config: CoverageConfig | None = None


def load_default_config() -> CoverageConfig:
    """Build the default config from PODCOVERAGE_CONFIG or the environment."""
    path = os.getenv(CONFIG_FILE_ENV)
    if path:
        return CoverageConfig.from_yaml(path)
    return CoverageConfig.from_env()


def get_config() -> CoverageConfig:
    global _default_config
    with _config_lock:
        if _default_config is None:
            _default_config = load_default_config()
        return _default_config


def _update_default(**changes: Any) -> CoverageConfig:
    global _default_config
    current = get_config()
    with _config_lock:
        _default_config = replace(current, **changes).validate()
        return _default_config


def set_number_pods(n: int) -> None:
    """Set how many replicas must answer before a collection completes.

    Call it before traffic starts, e.g. with the Deployment's replica count:

        podcoverage.set_number_pods(5)
    """
    _update_default(number_pods=n)


def set_logger(logger: CoverageLogger) -> None:
    """Route coverage log output to a custom logger."""
    if not isinstance(logger, CoverageLogger):
        raise ConfigurationError("logger must provide info() and error()")
    _update_default(logger=logger)


def reset_config() -> None:
    """Drop the default config so the next get_config() reloads it."""
    global _default_config
    with _config_lock:
        _default_config = None

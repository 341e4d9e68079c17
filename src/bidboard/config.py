"""Settings for the bidboard engine, read from ``BIDBOARD_*`` variables and CLI flags."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "BIDBOARD_"
TRUTHY = frozenset({"1", "true", "yes", "on"})

DEFAULT_DATA_DIR = Path("data")
DEFAULT_PAGE_SIZE = 6


@dataclass(frozen=True)
class RetryPolicy:
    """How hard to try a remote catalog call before giving up."""

    timeout_seconds: float = 30.0
    # Extra attempts for sync list and update calls; creates are never retried.
    retries: int = 0
    backoff_factor: float = 0.0
    circuit_breaker_failures: int = 3


@dataclass(frozen=True)
class Config:
    data_dir: Path
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    page_size: int = DEFAULT_PAGE_SIZE
    seed: Optional[int] = None
    verbose: bool = False

    @property
    def remote_enabled(self) -> bool:
        return bool(self.api_url)


def _text(value: object | None) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _integer(value: object | None) -> Optional[int]:
    text = _text(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def _number(value: object | None) -> Optional[float]:
    text = _text(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _directory(value: object | None) -> Optional[Path]:
    text = _text(value)
    return Path(text).expanduser().resolve() if text else None


def _enabled(value: object | None) -> bool:
    if isinstance(value, bool):
        return value
    return (_text(value) or "").lower() in TRUTHY


class _Sources:
    """Looks a setting up on the CLI namespace first, then in the environment."""

    def __init__(self, env: Mapping[str, str], cli_args: object | None) -> None:
        self.env = env
        self.cli_args = cli_args

    def cli(self, name: str) -> object | None:
        return getattr(self.cli_args, name, None) if self.cli_args is not None else None

    def env_value(self, name: str) -> Optional[str]:
        return self.env.get(ENV_PREFIX + name)

    def pick(self, name: str, convert):
        value = convert(self.cli(name.lower()))
        return value if value is not None else convert(self.env_value(name))


def _retry_policy(sources: _Sources) -> RetryPolicy:
    defaults = RetryPolicy()
    timeout = _number(sources.env_value("TIMEOUT"))
    retries = _integer(sources.env_value("RETRIES"))
    backoff = _number(sources.env_value("BACKOFF"))
    breaker = _integer(sources.env_value("BREAKER_FAILURES"))
    return RetryPolicy(
        timeout_seconds=timeout if timeout is not None and timeout > 0 else defaults.timeout_seconds,
        retries=max(0, retries) if retries is not None else defaults.retries,
        backoff_factor=max(0.0, backoff) if backoff is not None else defaults.backoff_factor,
        circuit_breaker_failures=breaker if breaker is not None else defaults.circuit_breaker_failures,
    )


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> Config:
    """Build a :class:`Config`; CLI values win and bad values fall back to defaults."""

    sources = _Sources(env, cli_args)
    api_url = sources.pick("API_URL", _text)
    page_size = sources.pick("PAGE_SIZE", _integer)
    return Config(
        data_dir=sources.pick("DATA_DIR", _directory) or DEFAULT_DATA_DIR.resolve(),
        api_url=api_url.rstrip("/") if api_url else None,
        api_token=_text(sources.env_value("API_TOKEN")),
        retry=_retry_policy(sources),
        page_size=page_size if page_size and page_size > 0 else DEFAULT_PAGE_SIZE,
        seed=sources.pick("SEED", _integer),
        verbose=_enabled(sources.cli("verbose")) or _enabled(sources.env_value("VERBOSE")),
    )


__all__ = ["Config", "RetryPolicy", "load_config", "DEFAULT_PAGE_SIZE"]

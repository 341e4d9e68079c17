from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

from bidboard.config import DEFAULT_PAGE_SIZE, RetryPolicy, load_config


def test_defaults_when_environment_is_empty() -> None:
    config = load_config({})

    assert config.data_dir == Path("data").resolve()
    assert config.api_url is None
    assert not config.remote_enabled
    assert config.retry == RetryPolicy()
    assert config.page_size == DEFAULT_PAGE_SIZE
    assert config.seed is None
    assert config.verbose is False


def test_environment_values(tmp_path: Path) -> None:
    env = {
        "BIDBOARD_DATA_DIR": str(tmp_path),
        "BIDBOARD_API_URL": "https://api.example.com/v1/",
        "BIDBOARD_API_TOKEN": "secret",
        "BIDBOARD_TIMEOUT": "12.5",
        "BIDBOARD_RETRIES": "3",
        "BIDBOARD_BACKOFF": "0.25",
        "BIDBOARD_BREAKER_FAILURES": "5",
        "BIDBOARD_PAGE_SIZE": "10",
        "BIDBOARD_SEED": "42",
        "BIDBOARD_VERBOSE": "yes",
    }

    config = load_config(env)

    assert config.data_dir == tmp_path.resolve()
    assert config.api_url == "https://api.example.com/v1"
    assert config.api_token == "secret"
    assert config.remote_enabled
    assert config.retry == RetryPolicy(
        timeout_seconds=12.5, retries=3, backoff_factor=0.25, circuit_breaker_failures=5
    )
    assert config.page_size == 10
    assert config.seed == 42
    assert config.verbose is True


def test_cli_arguments_win(tmp_path: Path) -> None:
    env = {"BIDBOARD_DATA_DIR": "/elsewhere", "BIDBOARD_SEED": "1", "BIDBOARD_PAGE_SIZE": "4"}
    args = SimpleNamespace(data_dir=str(tmp_path), seed=0, page_size=9, verbose=True, api_url=None)

    config = load_config(env, args)

    assert config.data_dir == tmp_path.resolve()
    assert config.seed == 0
    assert config.page_size == 9
    assert config.verbose is True


def test_unparseable_values_fall_back_to_defaults() -> None:
    env = {
        "BIDBOARD_TIMEOUT": "soon",
        "BIDBOARD_RETRIES": "-2",
        "BIDBOARD_PAGE_SIZE": "0",
        "BIDBOARD_SEED": "abc",
        "BIDBOARD_VERBOSE": "nope",
    }

    config = load_config(env)

    assert config.retry.timeout_seconds == RetryPolicy().timeout_seconds
    assert config.retry.retries == 0
    assert config.page_size == DEFAULT_PAGE_SIZE
    assert config.seed is None
    assert config.verbose is False

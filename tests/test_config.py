from __future__ import annotations

import os
from pathlib import Path

import pytest

from apibind import (
    ClientConfig,
    ExponentialBackoffRetryer,
    HeaderRequestInterceptor,
    JsonDecoder,
    LogLevel,
    RequestOptions,
)


def test_defaults() -> None:
    config = ClientConfig()
    assert config.log_level is LogLevel.NONE
    assert config.options == RequestOptions()
    assert config.request_interceptors == ()
    assert config.client is None
    assert config.dismiss_404 is False
    assert isinstance(config.retryer(), ExponentialBackoffRetryer)


def test_sequences_are_frozen_and_log_level_parsed() -> None:
    interceptors = [HeaderRequestInterceptor({"X-A": "1"})]
    config = ClientConfig(
        request_interceptors=interceptors,
        log_level="headers",  # type: ignore[arg-type]
    )
    interceptors.append(HeaderRequestInterceptor({"X-B": "2"}))
    assert len(config.request_interceptors) == 1
    assert isinstance(config.request_interceptors, tuple)
    assert config.log_level is LogLevel.HEADERS


@pytest.mark.parametrize(
    ("changes", "message"),
    [
        ({"request_interceptors": ["nope"]}, "is not callable"),
        ({"decoder": object()}, "no decode() method"),
        ({"client": object()}, "no execute() method"),
        ({"retryer": 3}, "zero-argument factory"),
    ],
)
def test_invalid_collaborators_are_rejected(changes: dict[str, object], message: str) -> None:
    with pytest.raises(TypeError) as excinfo:
        ClientConfig(**changes)  # type: ignore[arg-type]
    assert message in str(excinfo.value)


def test_unknown_log_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        ClientConfig(log_level="loud")  # type: ignore[arg-type]


def test_evolve_returns_validated_copy() -> None:
    config = ClientConfig()
    evolved = config.evolve(dismiss_404=True)
    assert evolved.dismiss_404 is True
    assert config.dismiss_404 is False
    with pytest.raises(TypeError):
        config.evolve(encoder=object())


def test_from_env_reads_prefixed_variables() -> None:
    config = ClientConfig.from_env(
        environ={
            "APIBIND_LOG_LEVEL": "basic",
            "APIBIND_CONNECT_TIMEOUT": "2.5",
            "APIBIND_READ_TIMEOUT": "30",
            "APIBIND_FOLLOW_REDIRECTS": "no",
            "APIBIND_MAX_ATTEMPTS": "2",
            "APIBIND_DISMISS_404": "true",
            "OTHER_LOG_LEVEL": "full",
        }
    )
    assert config.log_level is LogLevel.BASIC
    assert config.options == RequestOptions(
        connect_timeout=2.5, read_timeout=30.0, follow_redirects=False
    )
    retryer = config.retryer()
    assert isinstance(retryer, ExponentialBackoffRetryer)
    assert retryer.max_attempts == 2
    assert config.dismiss_404 is True


def test_from_env_ignores_empty_values_and_honours_prefix() -> None:
    config = ClientConfig.from_env(
        prefix="MYAPI_", environ={"MYAPI_LOG_LEVEL": "", "APIBIND_DISMISS_404": "1"}
    )
    assert config.log_level is LogLevel.NONE
    assert config.dismiss_404 is False


def test_from_env_overrides_win() -> None:
    decoder = JsonDecoder()
    config = ClientConfig.from_env(
        environ={"APIBIND_LOG_LEVEL": "full"}, log_level=LogLevel.NONE, decoder=decoder
    )
    assert config.log_level is LogLevel.NONE
    assert config.decoder is decoder


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("APIBIND_READ_TIMEOUT", "soon", "must be a number"),
        ("APIBIND_MAX_ATTEMPTS", "1.5", "must be an integer"),
        ("APIBIND_DISMISS_404", "maybe", "must be a boolean"),
    ],
)
def test_from_env_rejects_malformed_values(name: str, value: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        ClientConfig.from_env(environ={name: value})


def test_from_env_loads_dotenv_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Registers the variable with monkeypatch so it is removed again after the test.
    monkeypatch.setenv("APIBIND_LOG_LEVEL", "none")
    monkeypatch.delenv("APIBIND_LOG_LEVEL")
    env_file = tmp_path / ".env"
    env_file.write_text("APIBIND_LOG_LEVEL=full\n", encoding="utf-8")

    config = ClientConfig.from_env(load_dotenv=True, dotenv_path=env_file)

    assert config.log_level is LogLevel.FULL
    assert os.environ["APIBIND_LOG_LEVEL"] == "full"

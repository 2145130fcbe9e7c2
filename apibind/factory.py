"""
Generated clients.

`ApiBind.target()` validates an interface once, builds one `Dispatcher` per
bound method, and returns an instance of a generated subclass of the
interface whose methods delegate to that dispatch table.

Example:
    ```python
    from apibind import ApiBind, ClientConfig, JsonDecoder, JsonEncoder

    api = ApiBind(ClientConfig(encoder=JsonEncoder(), decoder=JsonDecoder()))
    with api.target(MyApi, "https://api.example.com") as client:
        entity = client.get("foo")
    ```
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Mapping
from typing import Any, TypeVar, cast

from .client import Client, HttpxClient
from .config import ClientConfig
from .contract import Contract
from .dispatcher import Dispatcher
from .logger import Logger
from .metadata import MethodMetadata
from .target import Target

T = TypeVar("T")


class GeneratedClient:
    """Behavior shared by every generated client class."""

    _apibind_target: Target[Any]
    _apibind_dispatchers: Mapping[str, Dispatcher]
    _apibind_client: Client
    _apibind_owns_client: bool

    def __init__(
        self,
        target: Target[Any],
        dispatchers: Mapping[str, Dispatcher],
        client: Client,
        owns_client: bool,
    ) -> None:
        self._apibind_target = target
        self._apibind_dispatchers = dispatchers
        self._apibind_client = client
        self._apibind_owns_client = owns_client

    def close(self) -> None:
        """Release the transport if this client created it."""
        if self._apibind_owns_client:
            close = getattr(self._apibind_client, "close", None)
            if close is not None:
                close()

    def __enter__(self) -> Any:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeneratedClient):
            return NotImplemented
        return self._apibind_target == other._apibind_target

    def __hash__(self) -> int:
        return hash(self._apibind_target)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._apibind_target!r})"


def target_of(client: Any) -> Target[Any]:
    """The `Target` a generated client was built for."""
    if not isinstance(client, GeneratedClient):
        raise TypeError(f"{client!r} is not a generated client")
    return client._apibind_target


def dispatchers_of(client: Any) -> Mapping[str, Dispatcher]:
    """The per-method dispatch table of a generated client."""
    if not isinstance(client, GeneratedClient):
        raise TypeError(f"{client!r} is not a generated client")
    return client._apibind_dispatchers


def _delegate(name: str, func: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(func)
    def call(self: GeneratedClient, *args: Any, **kwargs: Any) -> Any:
        return self._apibind_dispatchers[name](*args, **kwargs)

    return call


class ApiBind:
    """
    Builds generated clients from a `ClientConfig`.

    The config, the contract and every metadata table built here are immutable
    and may be shared by clients used from several threads.
    """

    def __init__(self, config: ClientConfig | None = None, *, contract: Contract | None = None):
        self.config = config or ClientConfig()
        self.contract = contract or Contract()

    def describe(self, interface: type) -> dict[str, MethodMetadata]:
        """Validate `interface` and return its metadata table."""
        return self.contract.parse_and_validate(interface)

    def target(self, interface: type[T], url: str, *, name: str = "") -> T:
        """Bind `interface` to the base `url` and return a generated client."""
        return self.new_instance(Target(interface, url, name))

    def new_instance(self, target: Target[T]) -> T:
        table = self.contract.parse_and_validate(target.interface)
        config = self.config
        owns_client = config.client is None
        client: Client = HttpxClient() if config.client is None else config.client
        logger = Logger(config.log_level)

        dispatchers: dict[str, Dispatcher] = {}
        namespace: dict[str, Any] = {"__module__": target.interface.__module__}
        for name, metadata in table.items():
            func = getattr(target.interface, name)
            dispatchers[name] = Dispatcher(
                metadata,
                target=target,
                config=config,
                client=client,
                logger=logger,
                signature=inspect.signature(func),
            )
            namespace[name] = _delegate(name, func)

        generated = type(
            f"{target.interface.__name__}Client", (GeneratedClient, target.interface), namespace
        )
        return cast(T, generated(target, dispatchers, client, owns_client))


def target(
    interface: type[T], url: str, config: ClientConfig | None = None, *, name: str = ""
) -> T:
    """Shorthand for `ApiBind(config).target(interface, url)`."""
    return ApiBind(config).target(interface, url, name=name)


__all__ = ["ApiBind", "GeneratedClient", "dispatchers_of", "target", "target_of"]

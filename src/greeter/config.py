"""TOML-based configuration for the greeter service.

Provides ``load_config`` / ``discover_config`` for loading ``greeter.toml``
and a hierarchy of frozen dataclasses for the actor, its store, the HTTP
server, the cross-origin policy and logging.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Literal


__all__ = [
    "ActorConfig",
    "CorsConfig",
    "GreeterConfig",
    "LoggingConfig",
    "MailboxConfig",
    "ServerConfig",
    "StoreConfig",
    "Variant",
    "discover_config",
    "load_config",
]


CONFIG_FILENAME = "greeter.toml"

type MailboxStrategy = Literal["drop_new", "drop_oldest", "backpressure"]
type StoreBackend = Literal["memory", "sqlite"]

_MAILBOX_STRATEGIES = ("drop_new", "drop_oldest", "backpressure")
_STORE_BACKENDS = ("memory", "sqlite")


class Variant(Enum):
    """Stream protocol spoken by the greeter actor.

    ``presence``
        Welcomes new connections, broadcasts the connection count and
        replies to any message with the composed greeting. Names are
        writable.

    ``plain``
        Replies to any message with a fixed acknowledgement and
        broadcasts the raw greeting after a write. The name is always
        supplied by the caller.
    """

    presence = "presence"
    plain = "plain"


@dataclass(frozen=True)
class MailboxConfig:
    """Mailbox settings for the greeter actor.

    Parameters
    ----------
    capacity : int | None
        Maximum queued messages. ``None`` for unbounded.
    strategy : MailboxStrategy
        Overflow strategy: ``"drop_new"``, ``"drop_oldest"`` or
        ``"backpressure"``. A bounded mailbox can lose any message,
        including a stream close (the connection then stays registered
        until a send to it fails) or a write (its caller times out).
        Every loss is logged as a warning.

    Examples
    --------
    >>> MailboxConfig(capacity=500, strategy="drop_oldest")
    MailboxConfig(capacity=500, strategy='drop_oldest')
    """

    capacity: int | None = None
    strategy: MailboxStrategy = "drop_new"


@dataclass(frozen=True)
class ActorConfig:
    """Settings for the single greeter actor.

    Parameters
    ----------
    name : str
        Logical name the router addresses the actor by.
    variant : Variant
        Stream protocol spoken to websocket clients.
    recount_delay : float
        Seconds between a stream closing and the connection count being
        rebroadcast to the remaining streams.
    send_timeout : float
        Upper bound on a single send to one connection. A connection that
        does not accept a message in time is evicted. Must be shorter than
        ``ask_timeout`` so a stalled stream never outlasts a caller.
    ask_timeout : float
        Upper bound on a request/response round trip to the actor.
    mailbox : MailboxConfig
        Mailbox settings.
    """

    name: str = "foo"
    variant: Variant = Variant.presence
    recount_delay: float = 0.5
    send_timeout: float = 2.0
    ask_timeout: float = 5.0
    mailbox: MailboxConfig = field(default_factory=MailboxConfig)


@dataclass(frozen=True)
class StoreConfig:
    """Durable state store settings.

    Examples
    --------
    >>> StoreConfig(backend="memory")
    StoreConfig(backend='memory', path=PosixPath('greeter.db'))
    """

    backend: StoreBackend = "sqlite"
    path: Path = Path("greeter.db")


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8787


@dataclass(frozen=True)
class CorsConfig:
    """Cross-origin policy applied to every HTTP route."""

    origins: tuple[str, ...] = (
        "http://localhost:5173",
        "https://durable-object-frontend.pages.dev",
    )
    allow_headers: tuple[str, ...] = ("Origin", "Content-Type", "Authorization")
    allow_methods: tuple[str, ...] = ("GET", "OPTIONS", "POST", "PUT", "DELETE")
    allow_credentials: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    colors: bool = True


@dataclass(frozen=True)
class GreeterConfig:
    """Top-level configuration container.

    Typically created via ``load_config()`` but can be constructed
    manually.

    Examples
    --------
    >>> config = GreeterConfig(store=StoreConfig(backend="memory"))
    >>> config.actor.name
    'foo'
    """

    system_name: str = "greeter"
    actor: ActorConfig = field(default_factory=ActorConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``greeter.toml``.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def _choice(value: str, allowed: tuple[str, ...], what: str) -> str:
    if value not in allowed:
        msg = f"Unknown {what} {value!r}, expected one of {', '.join(allowed)}"
        raise ValueError(msg)
    return value


def _parse_actor(raw: dict[str, Any]) -> ActorConfig:
    mailbox_raw = dict(raw.get("mailbox", {}))
    if "strategy" in mailbox_raw:
        _choice(mailbox_raw["strategy"], _MAILBOX_STRATEGIES, "mailbox strategy")

    variant_raw = raw.get("variant", Variant.presence.value)
    try:
        variant = Variant(variant_raw)
    except ValueError:
        msg = f"Unknown variant {variant_raw!r}, expected one of presence, plain"
        raise ValueError(msg) from None

    defaults = ActorConfig()
    send_timeout = float(raw.get("send_timeout", defaults.send_timeout))
    ask_timeout = float(raw.get("ask_timeout", defaults.ask_timeout))
    if send_timeout >= ask_timeout:
        msg = f"send_timeout ({send_timeout}) must be shorter than ask_timeout ({ask_timeout})"
        raise ValueError(msg)

    return ActorConfig(
        name=raw.get("name", defaults.name),
        variant=variant,
        recount_delay=float(raw.get("recount_delay", defaults.recount_delay)),
        send_timeout=send_timeout,
        ask_timeout=ask_timeout,
        mailbox=MailboxConfig(**mailbox_raw),
    )


def _parse_store(raw: dict[str, Any], base_dir: Path) -> StoreConfig:
    backend = _choice(raw.get("backend", "sqlite"), _STORE_BACKENDS, "store backend")
    path = Path(raw.get("path", "greeter.db"))
    if not path.is_absolute():
        path = base_dir / path
    return StoreConfig(backend=backend, path=path)  # type: ignore[arg-type]


def _parse_cors(raw: dict[str, Any]) -> CorsConfig:
    defaults = CorsConfig()
    return CorsConfig(
        origins=tuple(raw.get("origins", defaults.origins)),
        allow_headers=tuple(raw.get("allow_headers", defaults.allow_headers)),
        allow_methods=tuple(raw.get("allow_methods", defaults.allow_methods)),
        allow_credentials=bool(raw.get("allow_credentials", defaults.allow_credentials)),
    )


def load_config(path: Path | None = None) -> GreeterConfig:
    """Load a ``GreeterConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``greeter.toml`` by walking up
    from the current working directory. Returns the default config if no
    file is found. A relative store path is resolved against the config
    file's directory.

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ValueError
        If an enumerated setting has an unknown value, or ``send_timeout``
        is not shorter than ``ask_timeout``.
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return GreeterConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open("rb") as f:
        raw = tomllib.load(f)

    system_raw = raw.get("system", {})

    return GreeterConfig(
        system_name=system_raw.get("name", "greeter"),
        actor=_parse_actor(raw.get("actor", {})),
        store=_parse_store(raw.get("store", {}), path.parent.resolve()),
        server=ServerConfig(**raw.get("server", {})),
        cors=_parse_cors(raw.get("cors", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
    )

from greeter.behaviors import Behaviors
from greeter.config import (
    ActorConfig,
    CorsConfig,
    GreeterConfig,
    LoggingConfig,
    MailboxConfig,
    ServerConfig,
    StoreConfig,
    Variant,
    discover_config,
    load_config,
)
from greeter.connection import Connection, ConnectionRegistry, StreamTransport
from greeter.core import ActorContext, ActorRef, ActorSystem, Behavior, Mailbox
from greeter.directory import Greeter, GreeterDirectory
from greeter.errors import GreeterError, StoreUnavailableError, UnsupportedOperationError
from greeter.greeting import (
    Ack,
    AcceptConnection,
    BroadcastConnectionCount,
    BroadcastGreeting,
    ComposeGreeting,
    GetConnectionCount,
    GetGreeting,
    GetName,
    GreeterMsg,
    OperationFailed,
    SetGreeting,
    SetName,
    StreamClosed,
    StreamMessage,
    greeter_actor,
)
from greeter.payloads import (
    Acknowledged,
    BinaryMessage,
    GreetingChanged,
    Hello,
    TextMessage,
    UserCount,
    Welcome,
)
from greeter.store import InMemoryStore, SqliteStore, StateStore

__all__ = [
    "Ack",
    "AcceptConnection",
    "Acknowledged",
    "ActorConfig",
    "ActorContext",
    "ActorRef",
    "ActorSystem",
    "Behavior",
    "Behaviors",
    "BinaryMessage",
    "BroadcastConnectionCount",
    "BroadcastGreeting",
    "ComposeGreeting",
    "Connection",
    "ConnectionRegistry",
    "CorsConfig",
    "GetConnectionCount",
    "GetGreeting",
    "GetName",
    "Greeter",
    "GreeterConfig",
    "GreeterDirectory",
    "GreeterError",
    "GreeterMsg",
    "GreetingChanged",
    "Hello",
    "InMemoryStore",
    "LoggingConfig",
    "Mailbox",
    "MailboxConfig",
    "OperationFailed",
    "ServerConfig",
    "SetGreeting",
    "SetName",
    "SqliteStore",
    "StateStore",
    "StoreConfig",
    "StoreUnavailableError",
    "StreamClosed",
    "StreamMessage",
    "StreamTransport",
    "TextMessage",
    "UnsupportedOperationError",
    "UserCount",
    "Variant",
    "Welcome",
    "discover_config",
    "greeter_actor",
    "load_config",
]

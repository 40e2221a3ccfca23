from greeter.core.actor import ActorCell, CellContext
from greeter.core.behavior import Behavior, Signal
from greeter.core.context import ActorContext, System
from greeter.core.mailbox import Mailbox, MailboxOverflowStrategy
from greeter.core.ref import ActorId, ActorRef, LocalActorRef
from greeter.core.system import ActorSystem

__all__ = [
    "ActorCell",
    "ActorContext",
    "ActorId",
    "ActorRef",
    "ActorSystem",
    "Behavior",
    "CellContext",
    "LocalActorRef",
    "Mailbox",
    "MailboxOverflowStrategy",
    "Signal",
    "System",
]

"""Type definitions for the projlens background process."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional


class Message(Enum):
    """Command kinds accepted from the UI process.

    The value doubles as the worker request topic and as the ``type`` field
    of UI channel messages.
    """
    CONFIG = "config"
    LOAD_PROJECT = "load-project"
    PREV_STATE = "get-previous-state"
    DIRECT_STATE_TRANSITION = "transition-to-state"
    GET_SYMBOLS = "list-symbols"
    GET_METADATA = "get-metadata"
    GET_DATA = "get-data"
    TOGGLE_LIBS = "toggle-libraries"
    ENABLE_EXPORT = "enable-export"
    DISABLE_EXPORT = "disable-export"


class Status(Enum):
    """Outcome carried by every signal sent back to the UI."""
    SUCCESS = "success"
    FAILURE = "failure"


# A zero-argument unit of asynchronous work.
Task = Callable[[], Awaitable[Any]]

# Opaque snapshot identifier of one point in the analysis history.
ProjectState = Any


@dataclass
class WorkerRequest:
    """A request sent to the worker process: a topic plus its parameters."""
    topic: Message
    params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the wire shape ``{"topic": ..., **params}``."""
        data: Dict[str, Any] = {"topic": self.topic.value}
        data.update(self.params)
        return data


@dataclass
class WorkerResponse:
    """A reply from the worker process.

    Which field is meaningful depends on the request topic; the others stay
    at their defaults.
    """
    err: Any = None
    available: Any = None
    symbols: Optional[Any] = None
    data: Optional[Any] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> 'WorkerResponse':
        """Build a response from a decoded reply, keeping unknown keys."""
        known = {"err", "available", "symbols", "data"}
        return WorkerResponse(
            err=data.get("err"),
            available=data.get("available"),
            symbols=data.get("symbols"),
            data=data.get("data"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Signal:
    """An outcome notification for one command, as sent to the UI."""
    message: Message
    status: Status
    payload: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.message.value,
            "status": self.status.value,
            "data": self.payload,
        }

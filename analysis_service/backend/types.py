from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class SupervisorStatus:
    state: ConnectionState
    connected: bool
    reconnect_attempts: int
    process_alive: bool


@dataclass(frozen=True)
class ImageInput:
    data_b64: str
    media_type: str


@dataclass(frozen=True)
class BackendPrompt:
    text: str
    max_output_tokens: int
    system_instruction: str | None = None
    image: ImageInput | None = None

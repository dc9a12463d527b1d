"""Classification of inbound frames and names of outbound events."""

from __future__ import annotations

from enum import Enum

ANNOUNCEMENT_EVENT = "announcement"
READY_EVENT = "notifications:ready"
PING_EVENT = "heartbeat:ping"
ERROR_EVENT = "notifications:error"

HEARTBEAT_EVENTS = frozenset({"heartbeat", "ping", "pong"})

# Socket.IO lifecycle callbacks are not client frames.
LIFECYCLE_EVENTS = frozenset({"connect", "disconnect"})


class FrameKind(str, Enum):
	HEARTBEAT = "heartbeat"
	APPLICATION = "application"
	LIFECYCLE = "lifecycle"


def classify_frame(event: str) -> FrameKind:
	name = (event or "").strip().lower()
	if name in LIFECYCLE_EVENTS:
		return FrameKind.LIFECYCLE
	if name in HEARTBEAT_EVENTS:
		return FrameKind.HEARTBEAT
	return FrameKind.APPLICATION

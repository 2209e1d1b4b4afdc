from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Anchor:
    channel_id: str
    message_id: str


class ConversationAnchors:
    """Latest operator-facing envelope per requester.

    Process memory only: starts empty, every successful delivery overwrites the
    requester's entry, nothing is persisted.
    """

    def __init__(self) -> None:
        self._anchors: dict[str, Anchor] = {}

    def __len__(self) -> int:
        return len(self._anchors)

    def get(self, requester_id: str) -> Anchor | None:
        return self._anchors.get(requester_id)

    def record(self, requester_id: str, *, channel_id: str, message_id: str) -> None:
        self._anchors[requester_id] = Anchor(channel_id=channel_id, message_id=message_id)

    def is_current(self, requester_id: str, message_id: str) -> bool:
        anchor = self._anchors.get(requester_id)
        return anchor is not None and anchor.message_id == message_id

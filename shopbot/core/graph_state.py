from dataclasses import dataclass
from typing import Any, Sequence

from langchain_core.messages import BaseMessage, messages_from_dict, messages_to_dict


@dataclass(frozen=True)
class ConversationState:
    """
    Message history of one conversation thread.

    Append-only: `append` returns a new state whose messages are the old ones
    followed by the new ones. Nothing is ever reordered or removed.
    """

    messages: tuple[BaseMessage, ...] = ()

    @classmethod
    def of(cls, messages: Sequence[BaseMessage]) -> "ConversationState":
        return cls(tuple(messages))

    def append(self, *messages: BaseMessage) -> "ConversationState":
        return ConversationState(self.messages + tuple(messages))

    def __add__(self, other: "ConversationState") -> "ConversationState":
        return self.append(*other.messages)

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def last(self) -> BaseMessage | None:
        return self.messages[-1] if self.messages else None

    # ── Serialization (checkpoint payloads) ────────────────────────────────────

    def to_dict(self) -> list[dict[str, Any]]:
        return messages_to_dict(list(self.messages))

    @classmethod
    def from_dict(cls, payload: list[dict[str, Any]]) -> "ConversationState":
        return cls(tuple(messages_from_dict(payload)))

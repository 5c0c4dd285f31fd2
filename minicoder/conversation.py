"""Conversation messages exchanged with the model."""

from dataclasses import dataclass

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"invalid message role {self.role!r}")

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


class Conversation:
    """Append-only sequence of messages.

    Messages are never removed or replaced; the loop only appends an
    assistant reply followed by the user-role execution transcript.
    """

    def __init__(self, messages=()):
        self._messages: list[Message] = list(messages)

    def append(self, role: str, content: str) -> Message:
        msg = Message(role, content)
        self._messages.append(msg)
        return msg

    def as_dicts(self) -> list[dict]:
        return [m.to_dict() for m in self._messages]

    def __iter__(self):
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index):
        return self._messages[index]

    def __repr__(self) -> str:
        return f"Conversation({len(self._messages)} messages)"

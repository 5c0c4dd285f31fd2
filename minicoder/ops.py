"""Operation protocol: the JSON array a model replies with each turn.

Each array element is an object with at most one of ``shell`` (string),
``edit`` (``{"path": ..., "content": ...}``) or ``done`` (boolean).
"""

import json
from dataclasses import dataclass

from .report import ParseError

SYSTEM_PROMPT = (
    "You are a coding agent that generates JSON instructions. For each step "
    "respond with JSON array of operations. Available operations:\\n"
    '{"shell": "<command>"} to run shell commands, '
    '{"edit": {"path": "<file>", "content": "<text>"}} to write files, '
    'or {"done": true} when finished.'
)


@dataclass(frozen=True)
class Edit:
    path: str
    content: str


@dataclass(frozen=True)
class Operation:
    """One element of a model reply.

    A shell case is recognized by a non-empty ``shell``, an edit case by a
    present ``edit``, completion by ``done``. An element with none of these
    is an empty operation and has no effect.
    """

    shell: str = ""
    edit: Edit | None = None
    done: bool = False

    @property
    def kind(self) -> str:
        if self.shell:
            return "shell"
        if self.edit is not None:
            return "edit"
        if self.done:
            return "done"
        return "empty"


def is_completion(ops: list[Operation]) -> bool:
    """True only for a batch that is exactly one done operation."""
    return len(ops) == 1 and ops[0].done


def _optional(obj: dict, key: str, expected: type, index: int, default):
    value = obj.get(key)
    if value is None:
        return default
    if not isinstance(value, expected):
        raise ParseError(
            f"operation {index}: {key!r} expected {expected.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


def _decode_edit(value, index: int) -> Edit | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ParseError(
            f"operation {index}: 'edit' expected object, got {type(value).__name__}"
        )
    path = _optional(value, "path", str, index, "")
    content = _optional(value, "content", str, index, "")
    return Edit(path=path, content=content)


def _decode_operation(element, index: int) -> Operation:
    if element is None:
        return Operation()
    if not isinstance(element, dict):
        raise ParseError(
            f"operation {index}: expected object, got {type(element).__name__}"
        )
    return Operation(
        shell=_optional(element, "shell", str, index, ""),
        edit=_decode_edit(element.get("edit"), index),
        done=_optional(element, "done", bool, index, False),
    )


def parse_operations(raw: str) -> list[Operation]:
    """Decode a model reply into its ordered operations.

    Raises ParseError if the reply is not a JSON array of operation objects.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise ParseError(f"expected a JSON array, got {type(data).__name__}")
    return [_decode_operation(element, i) for i, element in enumerate(data)]

# storage.py
# Named key/value areas that namespaces declare and actions mutate.
#
# Storages are created once by State when a namespace first declares them and
# are never created on read. Every mutation emits a StorageUpdate event.

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from task_engine.errors import ActionError
from task_engine.events import EventChannel, StorageUpdate

CURRENT_TAG = "current"
PREVIOUS_TAG = "previous"


class StorageType(str, Enum):
    UNTAGGED = "untagged"
    TAGGED = "tagged"
    COMPLETION = "completion"
    CURRENT_PREVIOUS = "current_previous"


@dataclass
class StorageDescriptor:
    """Declares a storage a namespace needs, with optional default entries."""

    name: str
    type: StorageType
    predefined: dict[str, str] | None = None

    @classmethod
    def tagged(cls, name: str) -> "StorageDescriptor":
        return cls(name, StorageType.TAGGED)

    @classmethod
    def untagged(cls, name: str) -> "StorageDescriptor":
        return cls(name, StorageType.UNTAGGED)

    @classmethod
    def completion(cls, name: str) -> "StorageDescriptor":
        return cls(name, StorageType.COMPLETION)

    @classmethod
    def previous_current(cls, name: str) -> "StorageDescriptor":
        return cls(name, StorageType.CURRENT_PREVIOUS)

    def predefine(self, predefined: dict[str, str]) -> "StorageDescriptor":
        self.predefined = dict(predefined)
        return self


@dataclass
class Entry:
    data: str
    complete: bool = False
    time: float = field(default_factory=time.time)


class Storage:
    """
    A single storage area.

    Tagged storages map keys to entries. Untagged and completion storages keep
    an ordered list addressed by position. Current/previous storages hold one
    current value and remember the one it replaced.
    """

    def __init__(
        self,
        name: str,
        type_: StorageType,
        events: EventChannel,
        predefined: dict[str, str] | None = None,
    ) -> None:
        self._name = name
        self._type = type_
        self._events = events
        self._entries: dict[str, Entry] = {}
        self._counter = 0

        for key, value in (predefined or {}).items():
            self._entries[key] = Entry(value)

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> StorageType:
        return self._type

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _notify(self, key: str, prev: str | None, new: str | None) -> None:
        self._events.send(
            StorageUpdate(
                storage=self._name,
                storage_type=self._type.value,
                key=key,
                prev=prev,
                new=new,
            )
        )

    def _expect(self, *types: StorageType) -> None:
        if self._type not in types:
            raise ActionError(f"storage {self._name} is {self._type.value}, operation not supported")

    def _key_at(self, pos: int) -> str:
        keys = list(self._entries)
        if pos < 0 or pos >= len(keys):
            raise ActionError(f"no entry at position {pos} in storage {self._name}")
        return keys[pos]

    # ------------------------------------------------------------------
    # Tagged
    # ------------------------------------------------------------------

    def add_tagged(self, key: str, data: str) -> None:
        self._expect(StorageType.TAGGED)
        prev = self._entries.get(key)
        self._entries[key] = Entry(data)
        self._notify(key, prev.data if prev else None, data)

    def del_tagged(self, key: str) -> str | None:
        self._expect(StorageType.TAGGED)
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        self._notify(key, entry.data, None)
        return entry.data

    def get_tagged(self, key: str) -> str | None:
        entry = self._entries.get(key)
        return entry.data if entry else None

    # ------------------------------------------------------------------
    # Untagged / completion
    # ------------------------------------------------------------------

    def add_untagged(self, data: str) -> None:
        self._expect(StorageType.UNTAGGED)
        key = str(self._counter)
        self._counter += 1
        self._entries[key] = Entry(data)
        self._notify(key, None, data)

    def add_completion(self, data: str) -> None:
        self._expect(StorageType.COMPLETION)
        key = str(self._counter)
        self._counter += 1
        self._entries[key] = Entry(data, complete=False)
        self._notify(key, None, data)

    def del_completion(self, pos: int) -> str:
        self._expect(StorageType.COMPLETION)
        key = self._key_at(pos)
        entry = self._entries.pop(key)
        self._notify(key, entry.data, None)
        return entry.data

    def set_complete(self, pos: int) -> None:
        self._set_completion(pos, True)

    def set_not_complete(self, pos: int) -> None:
        self._set_completion(pos, False)

    def _set_completion(self, pos: int, complete: bool) -> None:
        self._expect(StorageType.COMPLETION)
        key = self._key_at(pos)
        entry = self._entries[key]
        entry.complete = complete
        self._notify(key, entry.data, entry.data)

    # ------------------------------------------------------------------
    # Current / previous
    # ------------------------------------------------------------------

    def set_current(self, data: str) -> None:
        self._expect(StorageType.CURRENT_PREVIOUS)
        prev = self._entries.get(CURRENT_TAG)
        if prev is not None:
            self._entries[PREVIOUS_TAG] = prev
        self._entries[CURRENT_TAG] = Entry(data)
        self._notify(CURRENT_TAG, prev.data if prev else None, data)

    def get_current(self) -> str | None:
        return self.get_tagged(CURRENT_TAG)

    def get_previous(self) -> str | None:
        return self.get_tagged(PREVIOUS_TAG)

    # ------------------------------------------------------------------
    # Common
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self._entries.clear()
        self._counter = 0
        self._notify("", None, None)

    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def iter(self) -> Iterator[tuple[str, Entry]]:
        return iter(list(self._entries.items()))

    def to_prompt(self) -> str:
        """Render the storage contents for the system prompt."""
        if self._type == StorageType.CURRENT_PREVIOUS:
            lines = []
            if (current := self.get_current()) is not None:
                lines.append(f"* current: {current}")
            if (previous := self.get_previous()) is not None:
                lines.append(f"* previous: {previous}")
            return "\n".join(lines)

        lines = []
        for pos, (key, entry) in enumerate(self._entries.items()):
            if self._type == StorageType.TAGGED:
                lines.append(f'- {key}="{entry.data}"')
            elif self._type == StorageType.COMPLETION:
                mark = "COMPLETED" if entry.complete else "not completed"
                lines.append(f"{pos + 1}. {entry.data} ({mark})")
            else:
                lines.append(f"- {entry.data}")
        return "\n".join(lines)

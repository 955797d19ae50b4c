"""Optional similarity index over shared-space messages."""
from __future__ import annotations

import abc
import json
import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Tuple

from agent_gateway.core.models import Message

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def message_to_text(message: Message) -> str:
    """Flatten the searchable parts of a message into one document."""
    parts: List[str] = []
    if message.task_text:
        parts.append(f"Task: {message.task_text}")
    if message.result is not None:
        result = message.result if isinstance(message.result, str) else json.dumps(message.result)
        parts.append(f"Result: {result}")
    if message.error is not None:
        parts.append(f"Error: {message.error.message}")
    return "\n".join(parts) or json.dumps(message.to_dict())


def tokenize(text: str) -> Counter:
    return Counter(token.lower() for token in _TOKEN_RE.findall(text))


class SimilarityIndex(abc.ABC):
    """Best-effort index; callers must tolerate any method raising."""

    @abc.abstractmethod
    async def add(self, space_id: str, message: Message) -> None:
        ...

    @abc.abstractmethod
    async def search(self, space_id: str, query: str, limit: int = 5) -> List[Message]:
        ...

    @abc.abstractmethod
    async def count(self, space_id: str) -> int:
        ...

    @abc.abstractmethod
    async def delete_space(self, space_id: str) -> None:
        ...


@dataclass(slots=True)
class _Entry:
    message: Message
    tokens: Counter


class KeywordIndex(SimilarityIndex):
    """In-process index ranking messages by token overlap with the query."""

    def __init__(self) -> None:
        self._entries: Dict[str, Dict[str, _Entry]] = {}

    async def add(self, space_id: str, message: Message) -> None:
        space = self._entries.setdefault(space_id, {})
        space[message.id] = _Entry(message=message, tokens=tokenize(message_to_text(message)))

    async def search(self, space_id: str, query: str, limit: int = 5) -> List[Message]:
        wanted = tokenize(query)
        if not wanted or limit <= 0:
            return []
        scored: List[Tuple[int, int, Message]] = []
        for position, entry in enumerate(self._entries.get(space_id, {}).values()):
            score = sum(min(count, entry.tokens[token]) for token, count in wanted.items())
            if score:
                # Newer messages win ties.
                scored.append((score, position, entry.message))
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [message for _, _, message in scored[:limit]]

    async def count(self, space_id: str) -> int:
        return len(self._entries.get(space_id, {}))

    async def delete_space(self, space_id: str) -> None:
        self._entries.pop(space_id, None)

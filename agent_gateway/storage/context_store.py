"""Tiered store for shared conversation spaces.

Three tiers are kept write-through on every mutation:

* L1, an in-process dict that stays authoritative once a space is touched;
* L2, a :class:`SnapshotStore` holding one whole-document snapshot per
  space, read on an L1 miss;
* L3, an optional :class:`SimilarityIndex` updated in the background only
  after the L2 write succeeded. Its failures are logged and never reach the
  caller.

Mutations of one space run one at a time under a per-space lock, so each
L2 snapshot includes every change that completed before it, and a delete
cannot be undone by a mutation that was already waiting.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Set

import structlog

from agent_gateway.core.errors import SpaceNotFoundError
from agent_gateway.core.event_bus import EventBus, EventType
from agent_gateway.core.models import ContextRef, Message, MessageType, SharedSpace, new_id, now_ms
from agent_gateway.storage.index import SimilarityIndex
from agent_gateway.storage.snapshot import SnapshotStore

logger = structlog.get_logger(__name__)


class ContextStore:
    def __init__(
        self,
        snapshots: SnapshotStore,
        index: Optional[SimilarityIndex] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._snapshots = snapshots
        self._index = index
        self._bus = bus
        self._cache: Dict[str, SharedSpace] = {}
        self._pending: Set[asyncio.Task[None]] = set()
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def has_index(self) -> bool:
        return self._index is not None

    async def create_shared_space(self, metadata: Optional[Dict[str, Any]] = None) -> str:
        space = SharedSpace(id=new_id(), metadata=dict(metadata or {}))
        self._cache[space.id] = space
        await self._snapshots.save(space.to_snapshot())
        logger.info("context.space_created", space_id=space.id)
        return space.id

    async def get_shared_space(self, space_id: str) -> Optional[SharedSpace]:
        """Return the live space record, loading it from L2 on a cache miss."""
        space = self._cache.get(space_id)
        if space is not None:
            return space
        try:
            snapshot = await self._snapshots.load(space_id)
        except (OSError, ValueError) as exc:
            logger.error("context.load_failed", space_id=space_id, error=str(exc))
            return None
        if snapshot is None:
            return None
        try:
            space = SharedSpace.from_snapshot(snapshot)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("context.snapshot_invalid", space_id=space_id, error=str(exc))
            return None
        # A concurrent loader may have populated L1 while this one awaited.
        return self._cache.setdefault(space_id, space)

    async def _require(self, space_id: str) -> SharedSpace:
        space = await self.get_shared_space(space_id)
        if space is None:
            raise SpaceNotFoundError(space_id)
        return space

    def _lock(self, space_id: str) -> asyncio.Lock:
        return self._locks.setdefault(space_id, asyncio.Lock())

    async def add_message(self, space_id: str, message: Message) -> None:
        async with self._lock(space_id):
            space = await self._require(space_id)
            space.messages.append(message)
            space.touch()
            self._cache[space_id] = space
            await self._snapshots.save(space.to_snapshot())
        self._schedule_index_add(space_id, message)
        self._notify(space, message_id=message.id)

    async def add_artifact(self, space_id: str, filename: str, content: str) -> str:
        async with self._lock(space_id):
            space = await self._require(space_id)
            location = await self._snapshots.write_artifact(space_id, filename, content)
            space.artifacts[filename] = location
            space.touch()
            self._cache[space_id] = space
            await self._snapshots.save(space.to_snapshot())
        self._notify(space, artifact=filename)
        return location

    async def get_artifact(self, space_id: str, filename: str) -> Optional[str]:
        space = await self.get_shared_space(space_id)
        if space is None:
            return None
        location = space.artifacts.get(filename)
        if location is None:
            return None
        return await self._snapshots.read_artifact(location)

    async def get_messages(self, space_id: str, limit: Optional[int] = None) -> List[Message]:
        space = await self.get_shared_space(space_id)
        if space is None:
            return []
        if limit:
            return list(space.messages[-limit:])
        return list(space.messages)

    async def delete_shared_space(self, space_id: str) -> bool:
        """Drop the space from every tier; returns whether it existed."""
        async with self._lock(space_id):
            existed = await self.get_shared_space(space_id) is not None
            await self._snapshots.delete(space_id)
            self._cache.pop(space_id, None)
        self._locks.pop(space_id, None)
        if self._index is not None:
            try:
                await self._index.delete_space(space_id)
            except Exception as exc:  # noqa: BLE001
                logger.warning("context.index_delete_failed", space_id=space_id, error=str(exc))
        if existed:
            logger.info("context.space_deleted", space_id=space_id)
        return existed

    async def search_similar(self, space_id: str, query: str, limit: int = 5) -> List[Message]:
        if self._index is None:
            return []
        try:
            return await self._index.search(space_id, query, limit)
        except Exception as exc:  # noqa: BLE001
            logger.warning("context.index_search_failed", space_id=space_id, error=str(exc))
            return []

    async def context_ref(self, space_id: str) -> ContextRef:
        await self._require(space_id)
        return ContextRef(shared_space_id=space_id)

    async def drain(self) -> None:
        """Wait for every background index write scheduled so far."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending)
            self._pending.difference_update(pending)

    def _schedule_index_add(self, space_id: str, message: Message) -> None:
        if self._index is None:
            return
        task = asyncio.create_task(self._index_add(space_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _index_add(self, space_id: str, message: Message) -> None:
        try:
            await self._index.add(space_id, message)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "context.index_add_failed",
                space_id=space_id,
                message_id=message.id,
                error=str(exc),
            )

    def _notify(self, space: SharedSpace, **details: Any) -> None:
        if self._bus is None:
            return
        self._bus.publish(
            EventType.CONTEXT_UPDATED,
            Message(
                id=new_id(),
                type=MessageType.EVENT,
                source="context",
                target="*",
                correlation_id=space.id,
                timestamp=now_ms(),
                event_type=EventType.CONTEXT_UPDATED.value,
                result={"space_id": space.id, "message_count": len(space.messages), **details},
            ),
        )

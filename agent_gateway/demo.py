"""CLI demonstration of direct and broadcast dispatch over a shared space."""
from __future__ import annotations

import asyncio
import tempfile

from agent_gateway.agents.echo import EchoBackend
from agent_gateway.config import Config
from agent_gateway.core.event_bus import Event, EventType
from agent_gateway.core.models import Message, RoutingRule, Strategy
from agent_gateway.observability import configure_logging
from agent_gateway.runtime import build_context


async def main() -> None:
    with tempfile.TemporaryDirectory() as data_dir:
        config = Config(
            data_dir=data_dir,
            default_agent="coder",
            routing_rules=(
                RoutingRule(
                    name="review",
                    keywords=("review",),
                    priority=10,
                    strategy=Strategy.BROADCAST,
                    agents=("coder", "reviewer"),
                ),
            ),
        )
        configure_logging(config)
        ctx = build_context(config)
        ctx.directory.register(EchoBackend("coder", "Coder", delay=0.05))
        ctx.directory.register(EchoBackend("reviewer", "Reviewer", delay=0.1))

        def on_completed(event: Event) -> None:
            print(f"[{event.type.value}] task {event.payload.id}: {event.payload.result}")

        ctx.bus.subscribe(EventType.TASK_COMPLETED, on_completed)

        space_id = await ctx.store.create_shared_space({"topic": "demo"})
        for text in ("Write a sorting function", "Please review the sorting function"):
            task = await ctx.tasks.process_task(Message.request(text, source="demo", shared_space_id=space_id))
            print(f"Task {task.id} -> {task.status.value} via {task.assigned_agents}")

        for message in await ctx.store.get_messages(space_id):
            print(f"  {message.type.value:<8} {message.source:<8} {message.task_text or message.result}")
        await ctx.store.drain()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()

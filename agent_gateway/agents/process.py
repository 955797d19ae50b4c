"""Backend that runs a local CLI agent as a subprocess per task."""
from __future__ import annotations

import asyncio
import contextlib
import os
from typing import Dict, Optional, Sequence, Tuple

import structlog

from agent_gateway.agents.base import AgentBackend
from agent_gateway.core.errors import ExecutionError
from agent_gateway.core.models import Message

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
HEALTH_TIMEOUT_SECONDS = 5.0


class ProcessBackend(AgentBackend):
    """Invoke ``command *args <task text>`` and return its stdout.

    Timeouts and non-zero exit statuses raise ``ExecutionError``; the task
    manager handles both the same way.
    """

    kind = "process"

    def __init__(
        self,
        agent_id: str,
        command: str,
        *,
        name: str = "",
        args: Sequence[str] = (),
        env: Optional[Dict[str, str]] = None,
        capabilities: Sequence[str] = (),
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(agent_id, name or agent_id, capabilities)
        self.command = command
        self.args: Tuple[str, ...] = tuple(args)
        self.env = dict(env or {})
        self.timeout = timeout

    def _timeout_for(self, request: Message) -> float:
        value = request.payload.options.get("timeout")
        try:
            return float(value) if value else self.timeout
        except (TypeError, ValueError):
            return self.timeout

    async def _run(self, argv: Sequence[str], timeout: float) -> Tuple[int, str, str]:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**os.environ, **self.env},
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            # The child may exit on its own between the timeout and the kill.
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise
        return (
            process.returncode or 0,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def invoke(self, request: Message) -> Message:
        argv = [self.command, *self.args, request.task_text]
        timeout = self._timeout_for(request)
        logger.info("process_backend.invoke", agent_id=self.agent_id, command=self.command)
        try:
            returncode, stdout, stderr = await self._run(argv, timeout)
        except asyncio.TimeoutError as exc:
            raise ExecutionError(f"{self.command} timed out after {timeout:g}s") from exc
        except OSError as exc:
            raise ExecutionError(f"{self.command} could not be started: {exc}") from exc

        if returncode != 0:
            detail = stderr.strip() or stdout.strip()
            raise ExecutionError(f"{self.command} exited with status {returncode}: {detail}")
        return request.reply(self.agent_id, result=stdout.strip())

    async def health(self) -> bool:
        for probe in ("--version", "-v"):
            try:
                returncode, _, _ = await self._run([self.command, probe], HEALTH_TIMEOUT_SECONDS)
            except (OSError, asyncio.TimeoutError):
                continue
            if returncode == 0:
                return True
        return False

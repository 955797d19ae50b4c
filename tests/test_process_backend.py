"""Tests for the subprocess-backed agent."""
from __future__ import annotations

import asyncio
import sys

import pytest

from agent_gateway.agents.process import ProcessBackend
from agent_gateway.core.errors import ExecutionError
from agent_gateway.core.models import Message, MessageType


def python_backend(script: str, **kwargs) -> ProcessBackend:
    return ProcessBackend("py", sys.executable, args=["-c", script], **kwargs)


@pytest.mark.anyio
async def test_stdout_becomes_result() -> None:
    backend = python_backend("import sys; print(sys.argv[1].upper())")
    request = Message.request("hello world", source="cli")

    response = await backend.invoke(request)

    assert response.result == "HELLO WORLD"
    assert response.type is MessageType.RESPONSE
    assert response.source == "py"
    assert response.target == "cli"
    assert response.correlation_id == request.correlation_id


@pytest.mark.anyio
async def test_non_zero_exit_raises_execution_error() -> None:
    backend = python_backend("import sys; sys.stderr.write('bad input'); sys.exit(3)")

    with pytest.raises(ExecutionError) as excinfo:
        await backend.invoke(Message.request("x"))

    assert "status 3" in str(excinfo.value)
    assert "bad input" in str(excinfo.value)


@pytest.mark.anyio
async def test_request_timeout_option_kills_the_process() -> None:
    backend = python_backend("import time; time.sleep(10)")

    with pytest.raises(ExecutionError, match="timed out"):
        await backend.invoke(Message.request("x", options={"timeout": 0.3}))


@pytest.mark.anyio
async def test_missing_command_raises_execution_error() -> None:
    backend = ProcessBackend("ghost", "definitely-not-an-installed-agent-cli")

    with pytest.raises(ExecutionError, match="could not be started"):
        await backend.invoke(Message.request("x"))


@pytest.mark.anyio
async def test_health_probes_version_flag() -> None:
    assert await ProcessBackend("py", sys.executable).health() is True
    assert await ProcessBackend("ghost", "definitely-not-an-installed-agent-cli").health() is False


@pytest.mark.anyio
async def test_stream_yields_single_final_chunk() -> None:
    backend = python_backend("import sys; print(sys.argv[1])")

    chunks = [chunk async for chunk in backend.invoke_stream(Message.request("ping"))]

    assert len(chunks) == 1
    assert chunks[0].type is MessageType.STREAM_END
    assert chunks[0].result == "ping"


class ExitedProcess:
    """A child that is already gone by the time the timeout fires."""

    returncode = 0

    async def communicate(self):
        await asyncio.sleep(10)

    def kill(self) -> None:
        raise ProcessLookupError

    async def wait(self) -> int:
        return 0


@pytest.mark.anyio
async def test_timeout_is_reported_when_child_exits_before_kill(monkeypatch) -> None:
    async def fake_exec(*argv, **kwargs):
        return ExitedProcess()

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    backend = ProcessBackend("cli", "agent-cli")

    with pytest.raises(ExecutionError, match="timed out"):
        await backend.invoke(Message.request("x", options={"timeout": 0.1}))

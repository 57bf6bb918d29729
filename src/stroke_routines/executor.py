"""Routine execution — runs command sequences step by step.

Steps run strictly in order. A failing step is counted and reported and
the remaining steps still run; a routine is a best-effort batch, not a
transaction.

Collaborators:
- host: anything with ``invoke(command_id)``; may return an awaitable.
  Raising means the step failed.
- shell: anything with ``submit(command_line)``; may return an awaitable.
  Success means the command was handed off, not that it exited 0.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol

from stroke_routines.commands import Command, CommandType
from stroke_routines.metrics import MetricsCollector
from stroke_routines.notify import LogNotifier, Notifier
from stroke_routines.store import Routine

logger = logging.getLogger("stroke_routines.executor")


class HostCommandInvoker(Protocol):
    def invoke(self, command_id: str) -> Any: ...


class ShellSubmitter(Protocol):
    def submit(self, command_line: str) -> Any: ...


class UnknownCommandError(LookupError):
    """No handler is registered for a host command id."""


class CommandRegistry:
    """Host-command collaborator backed by registered Python callables.

    Usage:
        registry = CommandRegistry()
        registry.register("files.saveAll", save_all)
        await registry.invoke("files.saveAll")
    """

    def __init__(self):
        self._handlers: dict[str, Callable[[], Any]] = {}

    def register(self, command_id: str, handler: Callable[[], Any]):
        self._handlers[command_id] = handler

    def unregister(self, command_id: str):
        self._handlers.pop(command_id, None)

    async def invoke(self, command_id: str) -> Any:
        handler = self._handlers.get(command_id)
        if handler is None:
            raise UnknownCommandError(f"Command not found: {command_id}")
        result = handler()
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def command_ids(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, command_id: str) -> bool:
        return command_id in self._handlers


class SubprocessShell:
    """Shell collaborator that launches command lines without waiting for them.

    Processes are reaped in the background; their exit status is only logged.
    """

    def __init__(self, timeout: float = 60.0):
        self.timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    async def submit(self, command_line: str):
        if not command_line.strip():
            raise ValueError("Empty shell command")

        proc = await asyncio.create_subprocess_shell(
            command_line,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        task = asyncio.create_task(self._reap(command_line, proc))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reap(self, command_line: str, proc):
        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            logger.warning("Shell command timed out: %s", command_line)
            return
        if proc.returncode != 0:
            logger.warning(
                "Shell [%s] exited %d: %s",
                command_line, proc.returncode, stderr.decode(errors="replace").strip(),
            )
        else:
            logger.debug("Shell [%s] -> rc=0", command_line)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def close(self):
        """Wait for submitted commands to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


@dataclass
class StepFailure:
    index: int
    label: str
    error: str


@dataclass
class ExecutionReport:
    """Outcome of running a command sequence."""
    routine: str
    success_count: int = 0
    failed_count: int = 0
    failures: list[StepFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_count == 0

    def to_dict(self) -> dict:
        return {
            "routine": self.routine,
            "success": self.success_count,
            "failed": self.failed_count,
            "failures": [
                {"index": f.index, "label": f.label, "error": f.error}
                for f in self.failures
            ],
        }


class RoutineExecutor:
    """Runs routines against host and shell collaborators."""

    def __init__(
        self,
        host: Optional[HostCommandInvoker] = None,
        shell: Optional[ShellSubmitter] = None,
        notifier: Optional[Notifier] = None,
        metrics: Optional[MetricsCollector] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.host = host if host is not None else CommandRegistry()
        self.shell = shell if shell is not None else SubprocessShell()
        self.notifier = notifier or LogNotifier()
        self.metrics = metrics
        self._sleep = sleep

    async def execute_routine(self, routine: Routine) -> ExecutionReport:
        """Run every command of ``routine`` in order and count the outcomes."""
        return await self._run(routine.name, routine.commands, routine.delay_ms)

    async def execute_commands(
        self,
        commands: Iterable,
        delay_ms: int = 0,
        name: str = "(test)",
    ) -> ExecutionReport:
        """Run an unsaved command list and notify a summary."""
        commands = [Command.from_record(c) for c in commands]
        self.notifier.info(
            f"Testing routine...{f' (delay: {delay_ms}ms)' if delay_ms > 0 else ''}"
        )
        report = await self._run(name, commands, delay_ms)
        if report.ok:
            self.notifier.info(f"Test completed: {report.success_count} commands OK")
        else:
            self.notifier.warning(f"Test completed with {report.failed_count} error(s)")
        return report

    async def _run(self, name: str, commands, delay_ms: int) -> ExecutionReport:
        commands = list(commands)
        total = len(commands)
        report = ExecutionReport(routine=name)

        logger.info("Starting routine %r", name)
        logger.info("  Commands: %s", " -> ".join(c.display_label for c in commands))
        logger.info("  Delay: %dms", delay_ms)

        for i, command in enumerate(commands):
            # Delay steps supply their own wait
            if i > 0 and delay_ms > 0 and command.type != CommandType.DELAY:
                await self._sleep(delay_ms / 1000.0)

            label = command.display_label
            logger.info("  [%d/%d] [%s] %s", i + 1, total, command.type.value, label)

            try:
                await self._run_step(command)
                report.success_count += 1
            except Exception as e:
                report.failed_count += 1
                report.failures.append(StepFailure(index=i, label=label, error=str(e)))
                logger.warning("  Step %r failed: %s", label, e)
                self.notifier.warning(f"Error in: {label}")

        logger.info(
            "Routine %r completed: %d success, %d failed",
            name, report.success_count, report.failed_count,
        )
        if self.metrics is not None:
            self.metrics.record_execution(name, report.success_count, report.failed_count)
        return report

    async def _run_step(self, command: Command):
        if command.type == CommandType.DELAY:
            ms = command.delay_ms
            if ms > 0:
                await self._sleep(ms / 1000.0)
            return

        if command.type == CommandType.SHELL:
            result = self.shell.submit(command.payload)
        else:
            result = self.host.invoke(command.payload)

        if inspect.isawaitable(result):
            await result

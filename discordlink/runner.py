"""
ScriptRunner: executes a sequence of command lines.

Lines run in order. A ``~``-prefixed line is waited for before the next
line starts; any other line is fire-and-forget and may still be running
while later lines execute. finish() waits for everything still in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from discordlink.commands import CommandDispatcher, CommandResult, parse_command
from discordlink.config.logging import get_logger
from discordlink.errors import InvalidArgumentsError

logger = get_logger(__name__)


class ScriptRunner:
    """
    Runs command lines through a dispatcher and keeps their results.

    Args:
        dispatcher: Dispatcher bound to the process's connection registry
    """

    def __init__(self, dispatcher: CommandDispatcher) -> None:
        self._dispatcher = dispatcher
        self.results: list[CommandResult] = []
        self.parse_errors: list[str] = []

    async def run_line(self, line: str, line_number: int = 0) -> CommandResult | None:
        """Parse and execute one line. Blank lines and # comments are skipped."""
        line = line.strip()
        if not line or line.startswith("#"):
            return None
        try:
            command = parse_command(line)
        except InvalidArgumentsError as e:
            text = f"line {line_number}: {e}"
            self.parse_errors.append(text)
            logger.error(text)
            return None
        result = await self._dispatcher.execute(command)
        self.results.append(result)
        return result

    async def run(self, lines: Iterable[str]) -> list[CommandResult]:
        for line_number, line in enumerate(lines, start=1):
            await self.run_line(line, line_number)
        await self.finish()
        return self.results

    async def finish(self) -> None:
        """Wait for all fire-and-forget commands to complete."""
        pending = [r.completion for r in self.results if r.completion is not None and not r.completion.done()]
        if pending:
            logger.debug(f"Waiting for {len(pending)} outstanding command(s)...")
            await asyncio.gather(*pending)

    @property
    def error_count(self) -> int:
        return len(self.parse_errors) + sum(len(r.errors) for r in self.results)

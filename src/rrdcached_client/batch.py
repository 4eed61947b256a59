"""Interpretation of BATCH summaries.

After the terminating dot the daemon answers with an error count and one
line per failed command::

    2 Errors
    1 message for command 1
    12 message for command 12

Command numbers are 1-based, counted from the first line after BATCH.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from rrdcached_client.commands import BATCH_DONE
from rrdcached_client.errors import BatchResultError, UsageError
from rrdcached_client.frames import FlagReply, LinesReply, Reply, TextReply

log = structlog.get_logger()

BATCH_ERROR_PATTERN = re.compile(r"^(\d+)\s(.+)$")


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a BATCH run.

    ``errors`` maps the 1-based command index to the daemon's message.
    Truthy when every command succeeded.
    """

    errors: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.ok


def build_payload(commands: Sequence[str]) -> str:
    """Join batch commands and append the terminator line.

    Raises:
        UsageError: If there are no commands
    """
    if not commands:
        raise UsageError("Cannot run BATCH with no command")
    return "\n".join([*commands, BATCH_DONE])


def interpret_batch_reply(reply: Reply) -> BatchResult:
    """Map the reply to the batch terminator onto a BatchResult.

    Raises:
        BatchResultError: If an error line doesn't match ``<index> <message>``
    """
    if isinstance(reply, FlagReply) and reply.value:
        return BatchResult()

    if isinstance(reply, TextReply):
        if reply.text.lower() != "errors":
            log.debug("batch_unknown_ack", text=reply.text)
        return BatchResult()

    if isinstance(reply, LinesReply):
        errors: dict[int, str] = {}
        for line in reply.lines:
            match = BATCH_ERROR_PATTERN.match(line)
            if not match:
                raise BatchResultError("\\n".join(reply.lines))
            errors[int(match.group(1))] = match.group(2)
        return BatchResult(errors=errors)

    raise BatchResultError(repr(reply))

"""Parsers for structured rrdcached replies (STATS, HELP, INFO)."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field, fields

_STATS_SPLIT = re.compile(r":\s+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
# rrdtool 1.8 printed 'TUNE <filename> [options]FLUSH <filename>' on one line (fixed in f142cc1)
_HELP_V18_GLITCH = re.compile(r"^(TUNE <filename> \[options])(FLUSH.+)$")

# INFO value types, see rrd_info_type_t
INFO_VAL = 0
INFO_CNT = 1
INFO_STR = 2
INFO_INT = 3
INFO_BLO = 4


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


@dataclass
class Stats:
    """Daemon counters reported by STATS.

    All values are unsigned 64-bit counters on the daemon side.
    """

    queue_length: int = 0  # Nodes currently in the update queue
    updates_received: int = 0  # UPDATE commands received
    flushes_received: int = 0  # FLUSH commands received
    updates_written: int = 0  # Calls to rrd_update_r since start
    data_sets_written: int = 0  # "Data sets" written to disk since start
    tree_nodes_number: int = 0  # Nodes in the cache
    tree_depth: int = 0  # Depth of the lookup tree
    journal_bytes: int = 0  # Bytes written to the journal since start
    journal_rotate: int = 0  # Journal rotations since start
    extra: dict[str, int] = field(default_factory=dict)  # Counters newer daemons add

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> Stats:
        """Parse ``Name: value`` lines.

        Raises:
            ValueError: If a line has no ``:`` separator or a non-integer value
        """
        known = {f.name for f in fields(cls)} - {"extra"}
        values: dict[str, int] = {}
        extra: dict[str, int] = {}
        for line in lines:
            parts = _STATS_SPLIT.split(line, maxsplit=1)
            if len(parts) != 2:
                raise ValueError(f"Invalid STATS line: {line!r}")
            key, raw = parts
            attr = _snake_case(key)
            if attr in known:
                values[attr] = int(raw)
            else:
                extra[key] = int(raw)
        return cls(**values, extra=extra)


def fix_help_output_v18(lines: Iterable[str]) -> list[str]:
    """Split the merged TUNE/FLUSH line of rrdtool 1.8."""
    result = []
    for line in lines:
        match = _HELP_V18_GLITCH.match(line)
        if match:
            result.append(match.group(1))
            result.append(match.group(2))
        else:
            result.append(line)
    return result


def parse_help(lines: Iterable[str]) -> list[str]:
    """Extract the sorted command names from a HELP reply."""
    names = [line.split(None, 1)[0] for line in fix_help_output_v18(lines) if line.strip()]
    return sorted(names)


def parse_info(lines: Iterable[str]) -> dict[str, float | int | str]:
    """Parse INFO lines of the form ``<key> <type> <value>``.

    Raises:
        ValueError: If a line is malformed or has an unknown type
    """
    info: dict[str, float | int | str] = {}
    for line in lines:
        parts = line.split(" ", 2)
        if len(parts) != 3:
            raise ValueError(f"Invalid INFO line: {line!r}")
        key, kind, raw = parts
        if kind == str(INFO_VAL):
            info[key] = float(raw)
        elif kind in (str(INFO_CNT), str(INFO_INT)):
            info[key] = int(raw)
        elif kind in (str(INFO_STR), str(INFO_BLO)):
            info[key] = raw
        else:
            raise ValueError(f"Unknown INFO type {kind!r} in line: {line!r}")
    return info

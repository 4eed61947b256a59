"""Tests for STATS/HELP/INFO parsers and the command catalogue."""

import math

import pytest

from rrdcached_client import commands
from rrdcached_client.commands import quote_filename
from rrdcached_client.parsers import Stats, fix_help_output_v18, parse_help, parse_info


class TestStats:
    def test_known_counters(self):
        stats = Stats.from_lines(
            [
                "QueueLength: 2",
                "UpdatesReceived: 1000",
                "FlushesReceived: 4",
                "UpdatesWritten: 900",
                "DataSetsWritten: 1800",
                "TreeNodesNumber: 12",
                "TreeDepth: 4",
                "JournalBytes: 123456",
                "JournalRotate: 1",
            ]
        )
        assert stats.queue_length == 2
        assert stats.updates_received == 1000
        assert stats.flushes_received == 4
        assert stats.updates_written == 900
        assert stats.data_sets_written == 1800
        assert stats.tree_nodes_number == 12
        assert stats.tree_depth == 4
        assert stats.journal_bytes == 123456
        assert stats.journal_rotate == 1
        assert stats.extra == {}

    def test_missing_counters_default_to_zero(self):
        stats = Stats.from_lines(["TreeDepth: 4"])
        assert stats.tree_depth == 4
        assert stats.queue_length == 0

    def test_unknown_counters_kept(self):
        stats = Stats.from_lines(["QueueLength: 0", "SomethingNew: 9"])
        assert stats.extra == {"SomethingNew": 9}

    def test_values_beyond_32_bits(self):
        stats = Stats.from_lines(["JournalBytes: 18446744073709551615"])
        assert stats.journal_bytes == 2**64 - 1

    @pytest.mark.parametrize("line", ["QueueLength 0", "QueueLength:0", "QueueLength: many"])
    def test_malformed_lines(self, line):
        with pytest.raises(ValueError):
            Stats.from_lines([line])


class TestHelp:
    def test_command_names_sorted(self):
        lines = ["UPDATE <filename> <values> [<values> ...]", "PING", "FLUSH <filename>"]
        assert parse_help(lines) == ["FLUSH", "PING", "UPDATE"]

    def test_v18_glitch_is_split(self):
        lines = ["TUNE <filename> [options]FLUSH <filename>", "PING"]
        assert fix_help_output_v18(lines) == [
            "TUNE <filename> [options]",
            "FLUSH <filename>",
            "PING",
        ]
        assert parse_help(lines) == ["FLUSH", "PING", "TUNE"]

    def test_blank_lines_ignored(self):
        assert parse_help(["PING", "", "  "]) == ["PING"]

    def test_well_formed_tune_line_untouched(self):
        assert fix_help_output_v18(["TUNE <filename> [options]"]) == ["TUNE <filename> [options]"]


class TestInfo:
    def test_value_types(self):
        info = parse_info(
            [
                "filename 2 /var/lib/rrd/load.rrd",
                "step 1 300",
                "last_update 3 1223661439",
                "ds[load].min 0 0.0000000000e+00",
                "ds[load].max 0 NaN",
                "header_size 4 binary blob",
            ]
        )
        assert info["filename"] == "/var/lib/rrd/load.rrd"
        assert info["step"] == 300
        assert info["last_update"] == 1223661439
        assert info["ds[load].min"] == 0.0
        assert math.isnan(info["ds[load].max"])
        assert info["header_size"] == "binary blob"

    def test_string_values_keep_spaces(self):
        assert parse_info(["rra[0].cf 2 AVERAGE with spaces"]) == {
            "rra[0].cf": "AVERAGE with spaces"
        }

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown INFO type"):
            parse_info(["step 9 300"])

    def test_malformed_line(self):
        with pytest.raises(ValueError, match="Invalid INFO line"):
            parse_info(["step"])

    def test_empty(self):
        assert parse_info([]) == {}


class TestCommands:
    def test_quote_filename(self):
        assert quote_filename("/data/my file.rrd") == "/data/my\\ file.rrd"
        assert quote_filename("/data/plain.rrd") == "/data/plain.rrd"

    def test_list_recursive_is_two_words(self):
        assert commands.LIST_RECURSIVE == "LIST RECURSIVE"

    def test_batch_terminator(self):
        assert commands.BATCH_DONE == "."

"""rrdcached command vocabulary.

See rrdcached(1) for the full description of each command.
"""

BATCH = "BATCH"
BATCH_DONE = "."  # Terminates the BATCH payload, on its own line
CREATE = "CREATE"
DUMP = "DUMP"  # Not in rrdtool 1.8.0
FETCH = "FETCH"
FETCHBIN = "FETCHBIN"
FIRST = "FIRST"
FLUSH = "FLUSH"
FLUSHALL = "FLUSHALL"
FORGET = "FORGET"  # Pending updates are lost
HELP = "HELP"
INFO = "INFO"
LAST = "LAST"
LIST = "LIST"
LIST_RECURSIVE = "LIST RECURSIVE"
PENDING = "PENDING"
PING = "PING"
QUEUE = "QUEUE"
QUIT = "QUIT"
RESUME = "RESUME"
RESUMEALL = "RESUMEALL"
STATS = "STATS"
SUSPEND = "SUSPEND"
SUSPENDALL = "SUSPENDALL"
TUNE = "TUNE"  # Since rrdtool 1.8.0
UPDATE = "UPDATE"
WROTE = "WROTE"  # Journal only, rejected on the socket


def quote_filename(filename: str) -> str:
    """Escape a filename for the daemon's whitespace tokenizer."""
    return filename.replace(" ", "\\ ")

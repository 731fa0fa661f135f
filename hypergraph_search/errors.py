import sys
from typing import Optional

from .logging_utils import write_log


class GraphTaskError(RuntimeError):
    """Structural validation failure; aborts the current run."""


def fatal(msg: str, log_file: Optional[str] = None):
    print(f"error: {msg}", file=sys.stderr)
    write_log(msg, log_file, tag="ERROR")
    raise GraphTaskError(msg)

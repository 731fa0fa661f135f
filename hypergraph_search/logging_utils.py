import os
import time
from datetime import datetime
from typing import Optional


# ============================================================
# Logging (no stdout printing; file only)
# ============================================================
def write_log(
    msg: str,
    log_file: Optional[str],
    *,
    tag: Optional[str] = None,
    also_print: bool = False,
    flush: bool = True,
):
    if log_file is None:
        if also_print:
            print(msg)
        return

    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    prefix = f"[{ts}]"
    if tag is not None:
        prefix += f"[{tag}]"

    lines = msg.splitlines() or [""]
    formatted = "\n".join(f"{prefix} {line}" for line in lines) + "\n"

    with open(log_file, "a", encoding="utf-8") as f:
        f.write(formatted)
        if flush:
            f.flush()

    if also_print:
        print(formatted, end="")


def log_kv(log_file: Optional[str], tag: str, **kwargs):
    parts = [f"{k}={v}" for k, v in kwargs.items()]
    write_log(" | ".join(parts), log_file, tag=tag, also_print=False)


class Timer:
    def __init__(self):
        self.t0 = time.perf_counter()
    def reset(self):
        self.t0 = time.perf_counter()
    def elapsed(self):
        return time.perf_counter() - self.t0

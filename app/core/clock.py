"""
Wall-clock helpers. Store timestamps are epoch milliseconds unless noted.
"""
import time


def now_ms() -> int:
    return int(time.time() * 1000)


def now_s() -> int:
    return int(time.time())

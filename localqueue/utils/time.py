from datetime import datetime, tzinfo
from typing import Callable, Optional

# a function returning the current time as epoch milliseconds
Clock = Callable[[], int]


def now(millis: bool = False, tz: Optional[tzinfo] = None) -> int:
    return mktime(datetime.now(tz=tz), millis=millis)


def now_millis() -> int:
    return now(millis=True)


def mktime(ts: datetime, millis: bool = False) -> int:
    if millis:
        return int(ts.timestamp() * 1000)
    return int(ts.timestamp())

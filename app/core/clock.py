"""
时间工具 - 统一使用无时区的UTC时间写库
"""

import math
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """当前UTC时间（naive，与数据库DateTime列保持一致）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def seconds_until(target: datetime, now: datetime) -> int:
    """距离目标时间的秒数，向上取整，最小为0"""
    return max(0, math.ceil((target - now).total_seconds()))


def minutes_until(target: datetime, now: datetime) -> int:
    """距离目标时间的分钟数，向上取整"""
    return math.ceil(seconds_until(target, now) / 60)

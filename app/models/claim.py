"""
领取身份与领取记录数据模型
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# 既无代理转发头也无对端地址时使用的占位地址
UNKNOWN_ADDRESS = "unknown"


class Identity(BaseModel):
    """领取身份：会话令牌 + 网络地址（不唯一，NAT下多个会话可共享地址）"""

    model_config = ConfigDict(frozen=True)

    session_token: str = Field(..., min_length=1)
    network_address: str = Field(..., min_length=1)

    @property
    def has_network_address(self) -> bool:
        return self.network_address != UNKNOWN_ADDRESS

    @property
    def window_keys(self) -> List[str]:
        """领取窗口键，任一命中即视为同一身份；地址未知时只按会话"""
        keys = [f"session:{self.session_token}"]
        if self.has_network_address:
            keys.append(f"ip:{self.network_address}")
        return keys


class ClaimRecord(BaseModel):
    """领取记录"""

    id: str
    session_token: str
    network_address: str
    coupon_id: str
    claimed_at: datetime


class ClaimRecordResponse(BaseModel):
    """调试接口返回的领取记录"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    session_token: str
    network_address: str
    coupon_id: str
    claimed_at: datetime

"""Store 的配置模型。"""

from pydantic import BaseModel, ConfigDict


class StoreConfig(BaseModel):
    """
    Store 配置。

    Attributes:
        name: store 名稱，出現在日誌與錯誤細節中。
        strict_actions: 是否要求 action 的 payload 為可序列化的純資料。
        log_errors: 錯誤處理器是否寫入 logging。
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = "store"
    strict_actions: bool = False
    log_errors: bool = True

"""
statebox 錯誤處理模組。

定義容器的錯誤分類，以及負責記錄與轉發錯誤的 ErrorHandler。
所有錯誤都在觸發它的呼叫點同步拋出，容器本身不做重試。
"""

import functools
import logging
import traceback
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StateboxError(Exception):
    """所有 statebox 異常的基礎類。"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """
        將錯誤轉為可序列化的字典。

        Returns:
            包含錯誤類型、訊息與細節的字典。
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": dict(self.details),
        }

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extra = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({extra})"


class InvalidRequestError(StateboxError):
    """到達核心提交步驟的 action 格式不正確。"""

    def __init__(self, message: str, action: Any = None, **kwargs: Any):
        details = {"action": action}
        details.update(kwargs)
        super().__init__(message, details)
        self.action = action


class InProgressDispatchError(StateboxError):
    """在另一個 dispatch 進行中時嘗試重入。"""

    def __init__(self, message: str, action_type: Optional[str] = None, **kwargs: Any):
        details = {"action_type": action_type}
        details.update(kwargs)
        super().__init__(message, details)
        self.action_type = action_type


class EmptyReducerMapError(StateboxError):
    """combine_reducers 收到空的 reducer 映射。"""


class TransitionFunctionError(StateboxError):
    """包裝應用 reducer 拋出的任何異常。"""

    def __init__(self, message: str, reducer_name: str, action_type: Optional[str], **kwargs: Any):
        details = {"reducer_name": reducer_name, "action_type": action_type}
        details.update(kwargs)
        super().__init__(message, details)
        self.reducer_name = reducer_name
        self.action_type = action_type


class ConfigurationError(StateboxError):
    """配置相關的錯誤。"""

    def __init__(self, message: str, component: str, config_key: Optional[str] = None, **kwargs: Any):
        details = {"component": component, "config_key": config_key}
        details.update(kwargs)
        super().__init__(message, details)
        self.component = component
        self.config_key = config_key


class ErrorHandler:
    """
    集中式錯誤處理器，負責日誌記錄並轉發給已註冊的回調。

    處理器只做報告，從不吞掉異常；拋出與否由呼叫端決定。
    """

    def __init__(self, name: str = "statebox", log_errors: bool = True):
        """
        初始化錯誤處理器。

        Args:
            name: 出現在日誌中的 store 名稱。
            log_errors: 是否寫入 logging。
        """
        self.name = name
        self.log_errors = log_errors
        self.handlers: List[Callable[[StateboxError], None]] = []

    def register_handler(self, handler: Callable[[StateboxError], None]) -> None:
        """
        註冊一個錯誤回調。

        Args:
            handler: 接收 StateboxError 的函數。
        """
        self.handlers.append(handler)

    def handle(self, error: Union[StateboxError, Exception]) -> None:
        """
        報告一個錯誤。非 StateboxError 會先包裝成 StateboxError 再轉發。

        Args:
            error: 要報告的錯誤。
        """
        if not isinstance(error, StateboxError):
            wrapped = StateboxError(str(error), {"original_type": type(error).__name__})
            wrapped.__cause__ = error
            error = wrapped

        # 同一個錯誤穿過巢狀呼叫時只報告一次
        if getattr(error, "_reported", False):
            return
        error._reported = True

        if self.log_errors:
            logger.error("[%s] %s", self.name, error)

        for handler in list(self.handlers):
            try:
                handler(error)
            except Exception:
                # 回調本身失敗不得蓋掉原始錯誤
                logger.exception("[%s] error handler %r failed", self.name, handler)


def handle_error(error_handler: ErrorHandler) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    裝飾器：函數拋出的錯誤先交給 error_handler 報告，再原樣拋出。

    Args:
        error_handler: 負責報告的處理器。

    Returns:
        裝飾器函數。
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as err:
                error_handler.handle(err)
                raise
        return wrapper
    return decorator

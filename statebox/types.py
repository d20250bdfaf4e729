"""
statebox 共用的類型定義。

集中放置各模組共用的 TypeVar、Callable 別名與 Protocol。
"""

from typing import Any, Callable, Optional, TypeVar
from typing_extensions import Protocol, TypedDict

S = TypeVar("S")
P = TypeVar("P")

Reducer = Callable[[Optional[S], Any], S]
Observer = Callable[[], None]
GetState = Callable[[], Any]
DispatchFunction = Callable[[Any], Any]
NextDispatch = Callable[[Any], Any]
MiddlewareFunction = Callable[[NextDispatch], DispatchFunction]
ThunkFunction = Callable[[DispatchFunction, GetState], Any]
StateSelector = Callable[[Any], Any]


class StoreAPI(Protocol):
    """中介軟體與延遲程序拿到的能力物件。"""

    def dispatch(self, action: Any) -> Any: ...

    def get_state(self) -> Any: ...


class ActionContext(TypedDict, total=False):
    """中介軟體 action_context 產生的上下文。"""

    action: Any
    prev_state: Any
    next_state: Any
    result: Any
    error: Optional[Exception]
    timestamp: float

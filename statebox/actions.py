"""
statebox 的 Action 定義模組。

此模組提供 Action 類別、創建 Action 的函數，以及代表延遲工作的 DeferredAction。
Actions 是描述狀態變更意圖的不可變對象，核心只依賴它的 type 判別欄位。
"""
import functools
from typing import Any, Callable, Dict, Generic, Mapping, Optional, Union, overload

from immutables import Map

from .errors import InvalidRequestError
from .immutable_utils import to_dict, to_immutable
from .types import P, StoreAPI

INIT_TYPE = "@@INIT"
REPLACE_TYPE = "@@REPLACE"


class Action(Generic[P]):
    """
    表示一個有類型和可選負載的動作。

    泛型參數:
        P: 負載的類型

    屬性:
        type: 動作的類型字符串
        payload: 動作的負載數據（可選）
        meta: 附加資訊（不可變的 Map），例如映射形式 action 中 type/payload 以外的鍵
    """
    __slots__ = ('type', 'payload', 'meta')

    def __init__(self, type: str, payload: Optional[P] = None, meta: Optional[Mapping[str, Any]] = None):
        super().__setattr__('type', type)
        super().__setattr__('payload', payload)
        super().__setattr__('meta', to_immutable(dict(meta)) if meta else Map())

    def __setattr__(self, name, value):
        if name not in self.__slots__:
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        if hasattr(self, name):
            raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")
        super().__setattr__(name, value)

    def __eq__(self, other):
        if not isinstance(other, Action):
            return False
        return self.type == other.type and self.payload == other.payload and self.meta == other.meta

    def __hash__(self):
        return hash((self.type, self.payload))

    def __repr__(self):
        if self.meta:
            return f"Action(type='{self.type}', payload={repr(self.payload)}, meta={to_dict(self.meta)!r})"
        return f"Action(type='{self.type}', payload={repr(self.payload)})"

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Action[Any]":
        """
        由 {"type": ..., "payload": ..., ...} 形式的映射建立 Action。

        type 與 payload 以外的鍵（如 "meta"、"error"）保留在 Action.meta 中，
        reducer 可以照常讀取。

        Args:
            mapping: 至少包含 "type" 鍵的映射。

        Returns:
            對應的 Action。

        Raises:
            InvalidRequestError: 缺少 type 鍵。
        """
        if "type" not in mapping:
            raise InvalidRequestError("Action mapping has no 'type' key", action=mapping)
        extra = {k: v for k, v in mapping.items() if k not in ("type", "payload")}
        return cls(mapping["type"], mapping.get("payload"), extra)

    def to_dict(self) -> Dict[str, Any]:
        """返回 {"type", "payload"} 形式的字典，meta 中的鍵一併展開"""
        result = to_dict(self.meta)
        result.update(type=self.type, payload=self.payload)
        return result


def _process_payload(payload: Any) -> Any:
    """將字典 payload 轉換為不可變的 Map"""
    if isinstance(payload, dict):
        return Map(payload)
    return payload


@overload
def create_action(action_type: str) -> Callable[..., Action[Any]]: ...


@overload
def create_action(action_type: str, prepare_fn: Callable[..., P]) -> Callable[..., Action[P]]: ...


def create_action(action_type: str, prepare_fn: Optional[Callable[..., Any]] = None) -> Callable[..., Action[Any]]:
    """
    創建一個 Action 生成器函數。

    Args:
        action_type: Action 的類型標識符
        prepare_fn: 可選的預處理函數，用於在創建 Action 前處理輸入參數

    Returns:
        一個可調用的函數，用於生成指定類型的 Action

    範例:
        >>> buy_cake = create_action("BUY_CAKE")
        >>> buy_cake()  # 返回 Action(type="BUY_CAKE", payload=None)
        >>>
        >>> restock = create_action("RESTOCK", lambda amount: amount)
        >>> restock(5)  # 返回 Action(type="RESTOCK", payload=5)
    """
    def action_creator(*args: Any, **kwargs: Any) -> Action[Any]:
        if prepare_fn:
            return Action(action_type, _process_payload(prepare_fn(*args, **kwargs)))
        if len(args) == 1 and not kwargs:
            return Action(action_type, _process_payload(args[0]))
        if args or kwargs:
            payload: Dict[Union[int, str], Any] = dict(zip(range(len(args)), args))
            payload.update(kwargs)
            return Action(action_type, _process_payload(payload))
        return Action(action_type)

    # 添加 type 屬性以便於識別
    action_creator.type = action_type  # type: ignore

    return action_creator


# 保留的內部 Actions，不應與任何應用 action 類型相符
init_store = create_action(INIT_TYPE)
replace_reducer_action = create_action(REPLACE_TYPE)


class DeferredAction:
    """
    延遲工作單元。

    ThunkMiddleware 遇到它時不會轉交給下一層，而是以 StoreAPI 呼叫 procedure，
    procedure 之後自行 dispatch 任意次普通 action，dispatch 的結果就是 procedure 的返回值。
    """
    __slots__ = ('procedure', 'name')

    def __init__(self, procedure: Callable[[StoreAPI], Any], name: Optional[str] = None):
        if not callable(procedure):
            raise TypeError(f"DeferredAction procedure must be callable, got {procedure!r}")
        self.procedure = procedure
        self.name = name or getattr(procedure, "__name__", repr(procedure))

    def run(self, api: StoreAPI) -> Any:
        return self.procedure(api)

    def __repr__(self):
        return f"DeferredAction(name='{self.name}')"


def deferred(fn: Callable[..., Any]) -> Callable[..., DeferredAction]:
    """
    裝飾器：把 fn(api, *args, **kwargs) 變成 DeferredAction 的生成器。

    範例:
        >>> @deferred
        ... def fetch_users(api, client):
        ...     api.dispatch(fetch_users_request())
        ...     client.get_users(on_done=lambda users: api.dispatch(fetch_users_success(users)))
        >>> store.dispatch(fetch_users(client))
    """
    @functools.wraps(fn)
    def creator(*args: Any, **kwargs: Any) -> DeferredAction:
        return DeferredAction(lambda api: fn(api, *args, **kwargs), name=fn.__name__)

    return creator

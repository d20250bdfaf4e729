"""
statebox 的 reducer 工具。

create_reducer / on 用來以 action 類型組裝 reducer，
combine_reducers 把多個以鍵命名的 reducer 組合成一個作用於整棵狀態樹的 reducer。
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from .actions import Action
from .errors import ConfigurationError, EmptyReducerMapError, StateboxError, TransitionFunctionError

logger = logging.getLogger(__name__)

S = TypeVar("S")
Reducer = Callable[[Optional[S], Action[Any]], S]


def create_reducer(initial_state: S, *handlers) -> Reducer[S]:
    """
    創建一個 reducer 函式，用於處理狀態變更。

    Args:
        initial_state: 初始狀態，state 為 None 時使用。
        *handlers: 一系列 (action_type, handler_fn) 元組或使用 on 函式創建的處理器。

    Returns:
        一個 reducer 函式，根據 action 的類型執行對應的處理邏輯。
    """
    action_handlers = {}

    for handler in handlers:
        if isinstance(handler, tuple) and len(handler) == 2:
            action_type, handler_fn = handler
            action_handlers[action_type] = handler_fn
        else:
            action_handlers.update(handler)

    def reducer(state: Optional[S] = None, action: Action = None) -> S:
        """
        根據 action 處理狀態變更。

        未識別的 action 返回同一個 state 引用，表示「沒有變化」。
        """
        if state is None:
            state = initial_state
        if action is None:
            return state

        handler = action_handlers.get(getattr(action, "type", None))
        if handler:
            return handler(state, action)
        return state

    reducer.initial_state = initial_state
    reducer.handlers = action_handlers

    return reducer


def on(action_creator_or_type, handler):
    """
    創建一個 action 類型與處理函式的映射。

    Args:
        action_creator_or_type: Action 創建器函式或 Action 類型字串。
        handler: 處理該 Action 的函式，接收 (state, action) 並返回新狀態。

    Returns:
        一個包含 {action_type: handler} 的字典。
    """
    if callable(action_creator_or_type) and hasattr(action_creator_or_type, 'type'):
        action_type = action_creator_or_type.type
    else:
        action_type = str(action_creator_or_type)

    return {action_type: handler}


class CombinedReducer:
    """
    由 combine_reducers 產生的組合 reducer。

    每次呼叫都返回一個新的 dict，只包含映射中的鍵，
    即使每個切片都沒有變化也一樣。各鍵的求值順序不屬於契約的一部分。
    """

    def __init__(self, reducers: Mapping[str, Reducer]):
        if not reducers:
            raise EmptyReducerMapError("combine_reducers() requires at least one reducer")

        for key, reducer in reducers.items():
            if not isinstance(key, str):
                raise ConfigurationError(
                    f"Reducer map keys must be strings, got {key!r}",
                    component="combine_reducers",
                    config_key=repr(key),
                )
            if not callable(reducer):
                raise ConfigurationError(
                    f"Reducer for key '{key}' is not callable",
                    component="combine_reducers",
                    config_key=key,
                )

        # 複製一份，之後對原映射的修改不影響組合結果
        self._reducers: Dict[str, Reducer] = dict(reducers)

    @property
    def reducers(self) -> Dict[str, Reducer]:
        """返回各切片 reducer 的副本"""
        return dict(self._reducers)

    def keys(self) -> List[str]:
        return list(self._reducers)

    def __call__(self, state: Optional[Mapping[str, Any]], action: Action[Any]) -> Dict[str, Any]:
        next_state: Dict[str, Any] = {}
        for key, reducer in self._reducers.items():
            prev_slice = state.get(key) if state is not None else None
            try:
                next_state[key] = reducer(prev_slice, action)
            except StateboxError:
                raise
            except Exception as err:
                action_type = getattr(action, "type", None)
                logger.debug("reducer for slice '%s' failed on %s", key, action_type)
                raise TransitionFunctionError(
                    f"Reducer for slice '{key}' raised {type(err).__name__}: {err}",
                    reducer_name=key,
                    action_type=action_type,
                ) from err
        return next_state

    def __repr__(self):
        return f"CombinedReducer(keys={self.keys()!r})"


def combine_reducers(reducers: Mapping[str, Reducer]) -> CombinedReducer:
    """
    把 {鍵: reducer} 映射組合成作用於整棵狀態樹的 reducer。

    Args:
        reducers: 切片鍵到 reducer 的映射，每個 reducer 只會收到並返回自己鍵下的切片。

    Returns:
        組合後的 reducer。

    Raises:
        EmptyReducerMapError: 映射為空。
        ConfigurationError: 鍵不是字串或 reducer 不可調用。
    """
    return CombinedReducer(reducers)

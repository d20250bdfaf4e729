import inspect
import itertools
import logging
import threading
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

from reactivex import Observable, Subject
from reactivex import operators as ops

from .actions import Action, init_store, replace_reducer_action
from .config import StoreConfig
from .errors import (
    ConfigurationError, ErrorHandler, InProgressDispatchError, InvalidRequestError,
    StateboxError, TransitionFunctionError,
)
from .immutable_utils import is_plain
from .middleware import BaseMiddleware, MiddlewareAPI, MiddlewareLike
from .types import DispatchFunction, Observer, Reducer

logger = logging.getLogger(__name__)

S = TypeVar("S")


class Subscription:
    """
    subscribe 返回的一次性取消訂閱憑證。

    呼叫它（或呼叫 unsubscribe）只移除它自己對應的那一筆註冊，重複呼叫不會出錯。
    """
    __slots__ = ('_remove', '_token', '_active')

    def __init__(self, remove: Callable[[int], None], token: int):
        self._remove = remove
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._remove(self._token)

    def __call__(self) -> None:
        self.unsubscribe()

    def __repr__(self):
        return f"Subscription(token={self._token}, active={self._active})"


class Store(Generic[S]):
    """
    狀態容器，持有唯一的當前狀態，只能透過 dispatch 經由 reducer 改變。

    每次成功提交後，依訂閱順序通知所有觀察者。同一時間只允許一個 dispatch 在進行：
    在同一執行緒內從 reducer 或觀察者重入 dispatch 會拋出 InProgressDispatchError，
    其他執行緒的 dispatch 則會等待目前的 dispatch 完成。
    """

    def __init__(
        self,
        reducer: Reducer,
        middleware: Sequence[MiddlewareLike] = (),
        config: Optional[StoreConfig] = None,
    ):
        """
        建立 Store 並以 reducer(None, @@INIT) 計算初始狀態。

        Args:
            reducer: 頂層 reducer。
            middleware: 中介軟體列表，第一個位於最外層。
            config: Store 配置，預設使用 StoreConfig()。

        Raises:
            ConfigurationError: reducer 不可調用或中介軟體格式錯誤。
            TransitionFunctionError: reducer 在初始化時拋出異常。
        """
        if not callable(reducer):
            raise ConfigurationError(
                f"Store reducer must be callable, got {reducer!r}", component="Store", config_key="reducer"
            )
        self.config = config or StoreConfig()
        self.error_handler = ErrorHandler(self.config.name, self.config.log_errors)
        self._reducer = reducer
        # token -> observer，依插入順序保存
        self._listeners: Dict[int, Observer] = {}
        self._tokens = itertools.count()
        self._lock = threading.RLock()
        self._is_dispatching = False
        # 每次提交後發送 (old_state, new_state)
        self._state_subject = Subject()
        self._middleware: List[Any] = []
        self._api = MiddlewareAPI(lambda action: self.dispatch(action), self.get_state)

        try:
            self._state = self._reduce(None, init_store())
        except StateboxError as err:
            self.error_handler.handle(err)
            raise

        for mw in middleware:
            self._middleware.append(self._instantiate(mw))
        self._dispatch_chain = self._apply_middleware_chain()
        logger.debug("[%s] store created with %d middleware", self.config.name, len(self._middleware))

    # ———— 讀取 ————

    def get_state(self) -> S:
        """
        返回當前狀態的引用，在觀察者內呼叫也會是剛提交的狀態。
        """
        return self._state

    @property
    def state(self) -> S:
        return self._state

    # ———— 分發 ————

    def dispatch(self, action: Any) -> Any:
        """
        分發一個動作，經過中介軟體鏈後提交。

        Args:
            action: Action、帶有 "type" 鍵的映射，或中介軟體能處理的其他值（如 DeferredAction）。

        Returns:
            普通 action 返回新狀態；被中介軟體攔截時返回中介軟體的結果。
        """
        return self._dispatch_chain(action)

    def _normalize(self, action: Any) -> Action[Any]:
        """驗證並把 action 轉為 Action，失敗時拋出 InvalidRequestError"""
        if isinstance(action, Mapping):
            action = Action.from_mapping(action)
        elif not isinstance(action, Action):
            raise InvalidRequestError(
                f"Actions must be Action instances or mappings with a 'type' key, got {type(action).__name__}; "
                "use ThunkMiddleware for deferred work",
                action=action,
            )
        if not isinstance(action.type, str) or not action.type:
            raise InvalidRequestError("Action type must be a non-empty string", action=action)
        if self.config.strict_actions and not is_plain(action.payload):
            raise InvalidRequestError(
                "Action payload must be plain serializable data", action=action, action_type=action.type
            )
        return action

    def _reduce(self, state: Any, action: Action[Any], reducer: Optional[Reducer] = None) -> Any:
        reducer = reducer or self._reducer
        try:
            return reducer(state, action)
        except StateboxError:
            raise
        except Exception as err:
            reducer_name = getattr(reducer, "__name__", type(reducer).__name__)
            raise TransitionFunctionError(
                f"Reducer '{reducer_name}' raised {type(err).__name__}: {err}",
                reducer_name=reducer_name,
                action_type=action.type,
            ) from err

    def _dispatch_core(self, action: Any, reducer: Optional[Reducer] = None) -> Any:
        """
        核心提交步驟：計算新狀態、替換、通知觀察者，返回新狀態。

        reducer 失敗時舊狀態保持不變，也不會通知任何觀察者。
        指定 reducer 時以它計算新狀態，並在提交狀態的同時成為 store 的 reducer。
        """
        with self._lock:
            if self._is_dispatching:
                action_type = action.get("type") if isinstance(action, Mapping) else getattr(action, "type", None)
                err = InProgressDispatchError(
                    "Cannot dispatch while another dispatch is in progress", action_type=action_type
                )
                self.error_handler.handle(err)
                raise err

            try:
                action = self._normalize(action)
            except InvalidRequestError as err:
                self.error_handler.handle(err)
                raise

            self._is_dispatching = True
            try:
                old_state = self._state
                try:
                    new_state = self._reduce(old_state, action, reducer)
                except StateboxError as err:
                    self.error_handler.handle(err)
                    raise

                if reducer is not None:
                    self._reducer = reducer
                self._state = new_state
                logger.debug("[%s] committed %s", self.config.name, action.type)
                try:
                    self._notify()
                finally:
                    self._state_subject.on_next((old_state, new_state))
            finally:
                self._is_dispatching = False

        return new_state

    def _notify(self) -> None:
        # 先取快照，通知過程中的訂閱變更留到下一次生效
        listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener()
            except Exception as err:
                self.error_handler.handle(err)
                raise

    # ———— 訂閱 ————

    def subscribe(self, observer: Observer) -> Subscription:
        """
        註冊一個無參數的觀察者，在每次提交後被呼叫。

        Args:
            observer: 觀察者。同一個函數可以註冊多次，每次都得到獨立的憑證。

        Returns:
            取消訂閱的憑證。
        """
        if not callable(observer):
            raise ConfigurationError(
                f"Observer must be callable, got {observer!r}", component="Store", config_key="observer"
            )
        with self._lock:
            token = next(self._tokens)
            self._listeners[token] = observer
        return Subscription(self._unsubscribe, token)

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    def select(self, selector: Optional[Callable[[S], Any]] = None) -> Observable:
        """
        選擇狀態的一部分進行觀察。

        Args:
            selector: 一個函數，接收整個狀態並返回希望觀察的部分。

        Returns:
            發送 (舊值, 新值) 的可觀察對象；只在新值改變時發出。
        """
        if selector is None:
            return self._state_subject.pipe(ops.distinct_until_changed(lambda pair: pair[1]))

        return self._state_subject.pipe(
            ops.map(lambda pair: (selector(pair[0]), selector(pair[1]))),
            ops.distinct_until_changed(lambda pair: pair[1]),
        )

    # ———— Reducer 與中介軟體 ————

    def replace_reducer(self, reducer: Reducer) -> S:
        """
        替換頂層 reducer，並以 @@REPLACE 重新計算一次狀態。
        新 reducer 計算失敗時，原本的 reducer 與狀態都保持不變。

        Args:
            reducer: 新的 reducer。

        Returns:
            重新計算後的狀態。
        """
        if not callable(reducer):
            raise ConfigurationError(
                f"Store reducer must be callable, got {reducer!r}", component="Store", config_key="reducer"
            )
        with self._lock:
            if self._is_dispatching:
                raise InProgressDispatchError("Cannot replace the reducer while dispatching")
            return self._dispatch_core(replace_reducer_action(), reducer=reducer)

    def apply_middleware(self, *middlewares: MiddlewareLike) -> None:
        """
        註冊更多中介軟體（附加在既有中介軟體之內層），並重建 dispatch 鏈。

        Args:
            *middlewares: 要註冊的中介軟體，可以是類、工廠或鉤子物件。
        """
        with self._lock:
            if self._is_dispatching:
                raise InProgressDispatchError("Cannot apply middleware while dispatching")
            for m in middlewares:
                self._middleware.append(self._instantiate(m))
            self._dispatch_chain = self._apply_middleware_chain()

    @staticmethod
    def _instantiate(mw: MiddlewareLike) -> Any:
        inst = mw() if inspect.isclass(mw) else mw
        if not callable(inst) and not hasattr(inst, "on_next"):
            raise ConfigurationError(
                f"Middleware must be a factory or define hooks, got {inst!r}",
                component="Store",
                config_key="middleware",
            )
        return inst

    def _apply_middleware_chain(self) -> DispatchFunction:
        """
        由內而外包裹中介軟體，列表中的第一個成為最外層。

        Returns:
            包裹後的 dispatch 方法。
        """
        dispatch = self._dispatch_core
        for mw in reversed(self._middleware):
            if callable(mw):
                dispatch = mw(self._api)(dispatch)
            else:
                dispatch = self._wrap_obj_middleware(mw, dispatch)
        return dispatch

    def _wrap_obj_middleware(self, mw: BaseMiddleware, next_dispatch: DispatchFunction) -> DispatchFunction:
        """
        包裹只實現鉤子的中介軟體物件。

        Args:
            mw: 中介軟體物件，需實現 on_next、on_complete 和 on_error 方法。
            next_dispatch: 下一層的 dispatch 方法。
        """
        if hasattr(mw, "action_context"):
            def dispatch(action: Any) -> Any:
                with mw.action_context(action, self._state) as context:
                    context['result'] = next_dispatch(action)
                    context['next_state'] = self._state
                return context['result']
            return dispatch

        def dispatch(action: Any) -> Any:
            mw.on_next(action, self._state)
            try:
                result = next_dispatch(action)
            except Exception as err:
                mw.on_error(err, action)
                raise
            mw.on_complete(self._state, action)
            return result

        return dispatch

    # ———— 生命週期 ————

    def teardown(self) -> None:
        """清除所有觀察者、結束狀態流，並通知中介軟體清理資源。"""
        with self._lock:
            self._listeners.clear()
        self._state_subject.on_completed()
        for mw in self._middleware:
            if hasattr(mw, "teardown"):
                mw.teardown()
        logger.debug("[%s] store torn down", self.config.name)

    def __enter__(self) -> "Store[S]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()


def create_store(reducer: Reducer, *middleware: MiddlewareLike, config: Optional[StoreConfig] = None) -> Store:
    """
    創建一個新的 Store 實例。

    Args:
        reducer: 頂層 reducer，可以是 combine_reducers 的結果。
        *middleware: 中介軟體，第一個位於最外層。
        config: 可選的 Store 配置。

    Returns:
        Store: 新創建的 Store 實例。
    """
    return Store(reducer, middleware, config)

"""
statebox 的中介軟體定義模組。

此模組提供各種中介軟體，用於在動作分發過程中插入自定義邏輯，
實現延遲（非同步）工作、日誌記錄、錯誤處理等功能。

中介軟體有兩種形式：
- 工廠函數 mw(api) -> (next_dispatch) -> (action) -> result
- 只實現鉤子（on_next / on_complete / on_error）的 BaseMiddleware 物件，由 Store 包裹
"""

import asyncio
import contextlib
import logging
import time
from typing import Any, Callable, Generator, Optional, Union, cast

from .actions import Action, DeferredAction, create_action
from .errors import InProgressDispatchError
from .types import (
    ActionContext, DispatchFunction, GetState, MiddlewareFunction, NextDispatch, StoreAPI, ThunkFunction
)

logger = logging.getLogger(__name__)


def _action_type(action: Any) -> str:
    if isinstance(action, DeferredAction):
        return f"<deferred {action.name}>"
    return str(getattr(action, "type", None) or type(action).__name__)


class MiddlewareAPI:
    """
    交給中介軟體與延遲程序的能力物件，只暴露 dispatch 與 get_state。

    dispatch 永遠經過完整的中介軟體鏈，即使鏈在之後被重建。
    """
    __slots__ = ('_dispatch', '_get_state')

    def __init__(self, dispatch: DispatchFunction, get_state: GetState):
        self._dispatch = dispatch
        self._get_state = get_state

    def dispatch(self, action: Any) -> Any:
        return self._dispatch(action)

    def get_state(self) -> Any:
        return self._get_state()


# ———— Base Middleware ————
class BaseMiddleware:
    """
    基礎中介類，定義所有中介可能實現的鉤子。

    只實現鉤子的子類由 Store 包裹；實現 __call__ 的子類則被當作工廠函數使用。
    """

    def on_next(self, action: Any, prev_state: Any) -> None:
        """
        在 action 傳給下一層之前調用。

        Args:
            action: 正在 dispatch 的 Action
            prev_state: dispatch 之前的 store 狀態
        """
        pass

    def on_complete(self, next_state: Any, action: Any) -> None:
        """
        在下一層處理完 action 之後調用。

        Args:
            next_state: dispatch 之後的最新 store 狀態
            action: 剛剛 dispatch 的 Action
        """
        pass

    def on_error(self, error: Exception, action: Any) -> None:
        """
        如果 dispatch 過程中拋出異常，則調用此鉤子。異常之後仍會被拋出。

        Args:
            error: 拋出的異常
            action: 導致異常的 Action
        """
        pass

    def teardown(self) -> None:
        """當 Store 清理資源時調用。"""
        pass

    @contextlib.contextmanager
    def action_context(self, action: Any, prev_state: Any) -> Generator[ActionContext, None, None]:
        """
        以上下文管理器包住一次分發的生命週期。

        使用方在 with 區塊內設置 context['next_state']，離開時觸發 on_complete；
        區塊內的異常觸發 on_error 後原樣拋出。
        """
        context: ActionContext = {
            'action': action,
            'prev_state': prev_state,
            'next_state': None,
            'result': None,
            'error': None,
            'timestamp': time.time(),
        }
        self.on_next(action, prev_state)
        try:
            yield context
        except Exception as err:
            context['error'] = err
            self.on_error(err, action)
            raise
        self.on_complete(context['next_state'], action)


# ———— LoggerMiddleware ————
class LoggerMiddleware(BaseMiddleware):
    """
    日誌中介，記錄每個 action 發送前和發送後的 state。

    使用場景:
    - 偵錯時需要觀察每次 state 的變化。
    - 確保 action 的執行順序正確。
    """

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.logger = log or logger
        self.level = level

    def on_next(self, action: Any, prev_state: Any) -> None:
        self.logger.log(self.level, "dispatching %s, state before: %r", _action_type(action), prev_state)

    def on_complete(self, next_state: Any, action: Any) -> None:
        self.logger.log(self.level, "state after %s: %r", _action_type(action), next_state)

    def on_error(self, error: Exception, action: Any) -> None:
        self.logger.warning("error in %s: %s", _action_type(action), error)


# ———— ThunkMiddleware ————
class ThunkMiddleware(BaseMiddleware):
    """
    支援 dispatch 延遲工作，可以在其中執行非同步邏輯或多次 dispatch。

    DeferredAction 以 StoreAPI 呼叫；一般函數以 (dispatch, get_state) 呼叫。
    返回值直接作為 dispatch 的結果，不會傳給下一層，也不會改變狀態。
    程序內的每次 dispatch 都從鏈的最外層重新進入，是獨立的頂層 dispatch。

    範例:
        ```python
        @deferred
        def fetch_users(api, client):
            api.dispatch(fetch_users_request())
            client.get_users(
                on_success=lambda users: api.dispatch(fetch_users_success(users)),
                on_failure=lambda err: api.dispatch(fetch_users_failure(str(err))),
            )

        store.dispatch(fetch_users(client))
        ```
    """

    def __call__(self, api: StoreAPI) -> MiddlewareFunction:
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Union[DeferredAction, ThunkFunction, Action[Any]]) -> Any:
                if isinstance(action, DeferredAction):
                    logger.debug("running deferred procedure %s", action.name)
                    return action.run(api)
                if callable(action):
                    return cast(ThunkFunction, action)(api.dispatch, api.get_state)
                return next_dispatch(action)
            return dispatch
        return middleware


# ———— AwaitableMiddleware ————
class AwaitableMiddleware(BaseMiddleware):
    """
    支援 dispatch coroutine/awaitable，完成後自動 dispatch 返回的 action。

    返回值為 None 時不 dispatch。需要正在運行的事件迴圈。

    範例:
        ```python
        async def load_users():
            users = await client.fetch_users()
            return fetch_users_success(users)

        task = store.dispatch(load_users())
        await task
        ```
    """

    def __call__(self, api: StoreAPI) -> MiddlewareFunction:
        def on_done(fut: "asyncio.Future[Any]") -> None:
            if fut.cancelled():
                return
            if fut.exception() is not None:
                # 異常保留在 task 上，由 await 它的一方取得
                logger.debug("awaitable failed: %r", fut.exception())
                return
            result = fut.result()
            if result is not None:
                api.dispatch(result)

        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                if asyncio.iscoroutine(action) or asyncio.isfuture(action):
                    task = asyncio.ensure_future(action)
                    task.add_done_callback(on_done)
                    return task
                return next_dispatch(action)
            return dispatch
        return middleware


# ———— ErrorMiddleware ————
global_error = create_action("[Error] GlobalError", lambda info: info)


class ErrorMiddleware(BaseMiddleware):
    """
    捕獲 dispatch 過程中的異常，dispatch 全域錯誤 Action 後原樣拋出。

    重入錯誤不會轉成 global_error，因為那時仍有 dispatch 在進行。

    使用場景:
    - 當需要在狀態中統一記錄所有異常時。
    """

    def __init__(self):
        self._api: Optional[StoreAPI] = None
        self._reporting = False

    def __call__(self, api: StoreAPI) -> MiddlewareFunction:
        self._api = api

        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                with self.action_context(action, api.get_state()) as context:
                    context['result'] = next_dispatch(action)
                    context['next_state'] = api.get_state()
                return context['result']
            return dispatch
        return middleware

    def on_error(self, error: Exception, action: Any) -> None:
        if self._api is None or self._reporting or isinstance(error, InProgressDispatchError):
            return
        error_info = {
            "error": str(error),
            "error_type": type(error).__name__,
            "action": _action_type(action),
            "timestamp": time.time(),
        }
        self._reporting = True
        try:
            self._api.dispatch(global_error(error_info))
        finally:
            self._reporting = False


MiddlewareLike = Union[BaseMiddleware, Callable[[StoreAPI], MiddlewareFunction], type]

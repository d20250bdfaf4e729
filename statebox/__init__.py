"""
statebox：可預測的狀態容器。

狀態只能透過 dispatch action 由純 reducer 改變，每次提交後通知觀察者。
"""

from .errors import (
    StateboxError, InvalidRequestError, InProgressDispatchError, EmptyReducerMapError,
    TransitionFunctionError, ConfigurationError, ErrorHandler, handle_error
)
from .actions import (
    Action, create_action, init_store, replace_reducer_action, DeferredAction, deferred,
    INIT_TYPE, REPLACE_TYPE
)
from .config import StoreConfig
from .middleware import (
    MiddlewareAPI, BaseMiddleware, LoggerMiddleware, ThunkMiddleware,
    AwaitableMiddleware, ErrorMiddleware, global_error
)
from .reducers import create_reducer, on, combine_reducers, CombinedReducer
from .store import Store, Subscription, create_store
from .selectors import create_selector
from .immutable_utils import to_immutable, to_dict, is_plain

__version__ = "0.1.0"

__all__ = [
    # Errors
    "StateboxError", "InvalidRequestError", "InProgressDispatchError", "EmptyReducerMapError",
    "TransitionFunctionError", "ConfigurationError", "ErrorHandler", "handle_error",

    # Actions
    "Action", "create_action", "init_store", "replace_reducer_action", "DeferredAction", "deferred",
    "INIT_TYPE", "REPLACE_TYPE",

    # Config
    "StoreConfig",

    # Middleware
    "MiddlewareAPI", "BaseMiddleware", "LoggerMiddleware", "ThunkMiddleware",
    "AwaitableMiddleware", "ErrorMiddleware", "global_error",

    # Reducers
    "create_reducer", "on", "combine_reducers", "CombinedReducer",

    # Store
    "Store", "Subscription", "create_store",

    # Selectors
    "create_selector",

    # Immutable Utils
    "to_immutable", "to_dict", "is_plain",
]

import functools
from typing import Any, Callable, Optional, Tuple

from .types import StateSelector


def create_selector(*selectors: StateSelector, result_fn: Optional[Callable[..., Any]] = None) -> StateSelector:
    """
    創建一個記憶化的複合選擇器。

    輸入選擇器的結果與上一次逐一以引用比較（is），全部相同時直接返回上次結果。
    這依賴 reducer 在沒有變化時返回同一個引用的約定。

    Args:
        *selectors: 輸入選擇器，從 state 中提取對應的值
        result_fn: 把輸入選擇器的輸出組合成最終結果的函數

    Returns:
        記憶化後的 selector 函數，帶有 cache_clear()
    """
    if not selectors:
        raise TypeError("create_selector() requires at least one input selector")

    if result_fn is None:
        if len(selectors) == 1:
            return selectors[0]
        result_fn = lambda *args: args

    last_inputs: Optional[Tuple[Any, ...]] = None
    last_result: Any = None

    @functools.wraps(result_fn)
    def selector(state: Any) -> Any:
        nonlocal last_inputs, last_result
        inputs = tuple(select(state) for select in selectors)
        if last_inputs is not None and all(a is b for a, b in zip(inputs, last_inputs)):
            return last_result
        last_result = result_fn(*inputs)
        last_inputs = inputs
        return last_result

    def cache_clear() -> None:
        nonlocal last_inputs, last_result
        last_inputs = None
        last_result = None

    selector.cache_clear = cache_clear  # type: ignore
    return selector

# statebox/immutable_utils.py
from typing import Any
from immutables import Map
from pydantic import BaseModel

_SCALARS = (str, int, float, bool, bytes, type(None))


def to_immutable(obj: Any) -> Any:
    """將任何對象轉換為不可變形式 (包括 Pydantic 模型)"""
    if isinstance(obj, BaseModel):
        return Map({k: to_immutable(v) for k, v in obj.model_dump().items()})
    elif isinstance(obj, dict):
        return Map({k: to_immutable(v) for k, v in obj.items()})
    elif isinstance(obj, list):
        return tuple(to_immutable(i) for i in obj)
    elif isinstance(obj, (set, frozenset)):
        return frozenset(to_immutable(i) for i in obj)
    return obj


def to_dict(obj: Any) -> Any:
    """將 Map 及其巢狀結構轉換為普通字典"""
    if isinstance(obj, (Map, dict)):
        return {k: to_dict(v) for k, v in obj.items()}
    elif isinstance(obj, tuple):
        return [to_dict(i) for i in obj]
    elif isinstance(obj, frozenset):
        return {to_dict(i) for i in obj}
    return obj


def is_plain(obj: Any) -> bool:
    """
    判斷值是否為可序列化的純資料。

    純資料指純量，以及由純資料組成的 dict / Map / list / tuple / set，
    映射的鍵必須是純量。函數、類實例等都不算。
    """
    if isinstance(obj, _SCALARS):
        return True
    if isinstance(obj, BaseModel):
        return is_plain(obj.model_dump())
    if isinstance(obj, (dict, Map)):
        return all(
            isinstance(k, _SCALARS) and is_plain(v) for k, v in obj.items()
        )
    if isinstance(obj, (list, tuple, set, frozenset)):
        return all(is_plain(i) for i in obj)
    return False

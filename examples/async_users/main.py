"""
非同步延遲工作範例：先 dispatch REQUEST，等待模擬的網路呼叫後再 dispatch SUCCESS 或 FAILURE。
"""
import asyncio
import logging
from typing import Any, List

from statebox import (
    DeferredAction, LoggerMiddleware, ThunkMiddleware, create_action, create_reducer, create_store, on
)

logging.basicConfig(level=logging.DEBUG, format="%(name)s %(message)s")
log = logging.getLogger("async_users")

# ============== Actions ==============
fetch_users_request = create_action("FETCH_USERS_REQUEST")
fetch_users_success = create_action("FETCH_USERS_SUCCESS", lambda users: tuple(users))
fetch_users_failure = create_action("FETCH_USERS_FAILURE", lambda error: error)

# ============== Reducer ==============
initial_state = {"loading": False, "users": (), "error": ""}

users_reducer = create_reducer(
    initial_state,
    on(fetch_users_request, lambda state, action: {**state, "loading": True}),
    on(fetch_users_success, lambda state, action: {"loading": False, "users": action.payload, "error": ""}),
    on(fetch_users_failure, lambda state, action: {"loading": False, "users": (), "error": action.payload}),
)


async def fake_fetch_users() -> List[str]:
    """模擬網路延遲"""
    await asyncio.sleep(0.5)
    return ["ada", "grace", "linus"]


def fetch_users() -> DeferredAction:
    async def procedure(api: Any) -> None:
        api.dispatch(fetch_users_request())
        try:
            users = await fake_fetch_users()
        except OSError as err:
            api.dispatch(fetch_users_failure(str(err)))
        else:
            api.dispatch(fetch_users_success(users))

    return DeferredAction(procedure, name="fetch_users")


async def main() -> None:
    store = create_store(users_reducer, ThunkMiddleware, LoggerMiddleware())
    store.subscribe(lambda: log.info("state: %s", store.get_state()))
    await store.dispatch(fetch_users())


if __name__ == "__main__":
    asyncio.run(main())

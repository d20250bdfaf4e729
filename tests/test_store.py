from __future__ import annotations

import datetime
import threading
import time
from typing import Any

import pytest

from statebox import (
    INIT_TYPE,
    Action,
    ConfigurationError,
    InProgressDispatchError,
    InvalidRequestError,
    Store,
    StoreConfig,
    TransitionFunctionError,
    create_action,
    create_store,
)

from .helpers import count, inc, noop


def test_initial_state_comes_from_reducer_default() -> None:
    seen: list[Action[Any]] = []

    def reducer(state: Any, action: Action[Any]) -> Any:
        seen.append(action)
        return {"ready": True} if state is None else state

    store = create_store(reducer)

    assert store.get_state() == {"ready": True}
    assert [a.type for a in seen] == [INIT_TYPE]


def test_counter_scenario() -> None:
    store = create_store(count)

    assert store.get_state() == 0
    assert store.dispatch(inc()) == 1
    assert store.dispatch(inc()) == 2
    assert store.dispatch(noop()) == 2
    assert store.get_state() == 2
    assert store.state == 2


def test_state_after_each_dispatch_is_reducer_applied_to_previous() -> None:
    def reducer(state: Any, action: Action[Any]) -> Any:
        if state is None:
            return ()
        return state + (action.type,)

    store = create_store(reducer)
    expected: Any = store.get_state()
    for action_type in ["A", "B", "A", "C"]:
        action = Action(action_type)
        expected = reducer(expected, action)
        store.dispatch(action)
        assert store.get_state() == expected


def test_mapping_actions_are_normalized() -> None:
    received: list[Any] = []

    def reducer(state: Any, action: Any) -> Any:
        received.append(action)
        return count(state, action)

    store = create_store(reducer)
    assert store.dispatch({"type": "INC"}) == 1
    assert store.dispatch({"type": "INC", "payload": [1, 2]}) == 2
    assert all(isinstance(a, Action) for a in received)
    assert received[-1].payload == [1, 2]


def test_mapping_action_extra_keys_reach_reducer_as_meta() -> None:
    sources: list[Any] = []

    def reducer(state: Any, action: Action[Any]) -> Any:
        if action.meta:
            sources.append(action.meta["meta"]["source"])
        return count(state, action)

    store = create_store(reducer)

    assert store.dispatch({"type": "INC", "meta": {"source": "ui"}}) == 1
    assert sources == ["ui"]


@pytest.mark.parametrize(
    "bad_action",
    [None, 42, "INC", {"payload": 1}, Action(""), Action(None)],
)
def test_invalid_requests_are_rejected_without_state_change(bad_action: Any) -> None:
    store = create_store(count)
    calls: list[int] = []
    store.subscribe(lambda: calls.append(1))

    with pytest.raises(InvalidRequestError):
        store.dispatch(bad_action)

    assert store.get_state() == 0
    assert calls == []


def test_callable_reaching_core_is_invalid_without_thunk_middleware() -> None:
    store = create_store(count)

    with pytest.raises(InvalidRequestError):
        store.dispatch(lambda dispatch, get_state: None)


def test_non_plain_payload_accepted_unless_strict() -> None:
    store = create_store(count)

    assert store.dispatch(Action("INC", payload=datetime.date(2024, 1, 1))) == 1
    assert store.dispatch(Action("INC", payload={"callback": print})) == 2

    strict = create_store(count, config=StoreConfig(strict_actions=True))
    with pytest.raises(InvalidRequestError):
        strict.dispatch(Action("INC", payload={"callback": print}))
    assert strict.get_state() == 0


def test_observers_notified_in_subscription_order_once_per_dispatch() -> None:
    store = create_store(count)
    calls: list[str] = []
    store.subscribe(lambda: calls.append("first"))
    store.subscribe(lambda: calls.append("second"))
    store.subscribe(lambda: calls.append("third"))

    store.dispatch(inc())

    assert calls == ["first", "second", "third"]


def test_observers_notified_even_when_state_reference_unchanged() -> None:
    store = create_store(count)
    calls: list[int] = []
    store.subscribe(lambda: calls.append(store.get_state()))

    store.dispatch(noop())

    assert calls == [0]


def test_observer_sees_committed_state() -> None:
    store = create_store(count)
    seen: list[int] = []
    store.subscribe(lambda: seen.append(store.get_state()))

    store.dispatch(inc())
    store.dispatch(inc())

    assert seen == [1, 2]


def test_unsubscribe_is_idempotent_and_stops_notifications() -> None:
    store = create_store(count)
    calls: list[int] = []
    subscription = store.subscribe(lambda: calls.append(1))

    store.dispatch(inc())
    subscription()
    assert subscription.active is False
    subscription.unsubscribe()
    store.dispatch(inc())

    assert calls == [1]


def test_same_observer_subscribed_twice_has_independent_handles() -> None:
    store = create_store(count)
    calls: list[int] = []

    def observer() -> None:
        calls.append(1)

    first = store.subscribe(observer)
    store.subscribe(observer)
    store.dispatch(inc())
    assert len(calls) == 2

    first()
    first()
    store.dispatch(inc())
    assert len(calls) == 3


def test_subscription_changes_during_notification_apply_to_next_pass() -> None:
    store = create_store(count)
    calls: list[str] = []
    handles: dict[str, Any] = {}

    def late() -> None:
        calls.append("late")

    def first() -> None:
        calls.append("first")
        if "late" not in handles:
            handles["late"] = store.subscribe(late)
        handles["second"].unsubscribe()

    def second() -> None:
        calls.append("second")

    store.subscribe(first)
    handles["second"] = store.subscribe(second)

    store.dispatch(inc())
    # snapshot taken before the pass: second still runs, late does not
    assert calls == ["first", "second"]

    calls.clear()
    store.dispatch(inc())
    assert calls == ["first", "late"]


def test_dispatch_from_reducer_raises_and_leaves_state_unchanged() -> None:
    holder: dict[str, Store[Any]] = {}

    def reducer(state: Any, action: Action[Any]) -> Any:
        if action.type == "NESTED":
            holder["store"].dispatch(inc())
        return count(state, action)

    store = create_store(reducer)
    holder["store"] = store
    store.dispatch(inc())
    calls: list[int] = []
    store.subscribe(lambda: calls.append(1))

    with pytest.raises(InProgressDispatchError):
        store.dispatch(Action("NESTED"))

    assert store.get_state() == 1
    assert calls == []
    # the store is usable afterwards
    assert store.dispatch(inc()) == 2


def test_dispatch_from_observer_is_rejected() -> None:
    store = create_store(count)
    errors: list[Exception] = []

    def observer() -> None:
        try:
            store.dispatch(inc())
        except InProgressDispatchError as err:
            errors.append(err)

    store.subscribe(observer)
    store.dispatch(inc())

    assert store.get_state() == 1
    assert len(errors) == 1
    assert errors[0].action_type == "INC"


def test_reducer_failure_wraps_error_and_keeps_previous_state() -> None:
    def reducer(state: Any, action: Action[Any]) -> Any:
        if action.type == "BOOM":
            raise ValueError("kaboom")
        return count(state, action)

    store = create_store(reducer)
    store.dispatch(inc())
    calls: list[int] = []
    store.subscribe(lambda: calls.append(1))

    with pytest.raises(TransitionFunctionError) as exc_info:
        store.dispatch(Action("BOOM"))

    assert isinstance(exc_info.value.__cause__, ValueError)
    assert exc_info.value.action_type == "BOOM"
    assert exc_info.value.reducer_name == "reducer"
    assert store.get_state() == 1
    assert calls == []


def test_reducer_failure_at_construction_surfaces_from_create_store() -> None:
    def reducer(state: Any, action: Action[Any]) -> Any:
        raise RuntimeError("no default")

    with pytest.raises(TransitionFunctionError):
        create_store(reducer)


def test_non_callable_reducer_and_observer_are_configuration_errors() -> None:
    with pytest.raises(ConfigurationError):
        create_store({"not": "callable"})  # type: ignore[arg-type]

    store = create_store(count)
    with pytest.raises(ConfigurationError):
        store.subscribe("nope")  # type: ignore[arg-type]


def test_observer_exception_propagates_after_commit() -> None:
    store = create_store(count)
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("observer failed")

    store.subscribe(broken)
    store.subscribe(lambda: calls.append("after"))

    with pytest.raises(RuntimeError):
        store.dispatch(inc())

    assert store.get_state() == 1
    assert calls == []
    # in-flight flag was released
    store.subscribe(lambda: None)


def test_replace_reducer_recomputes_state_and_notifies() -> None:
    store = create_store(count)
    store.dispatch(inc())
    calls: list[int] = []
    store.subscribe(lambda: calls.append(1))

    def doubled(state: Any, action: Action[Any]) -> Any:
        if state is None:
            return 0
        return state * 2 if action.type == "INC" else state

    assert store.replace_reducer(doubled) == 1
    assert calls == [1]
    assert store.dispatch(inc()) == 2
    assert store.dispatch(inc()) == 4


def tens(state: Any, action: Action[Any]) -> Any:
    if state is None:
        return 0
    return state + 10 if action.type == "INC" else state


def test_replace_reducer_failure_keeps_previous_reducer_and_state() -> None:
    store = create_store(count)
    store.dispatch(inc())

    def broken(state: Any, action: Action[Any]) -> Any:
        raise KeyError("missing slice")

    with pytest.raises(TransitionFunctionError):
        store.replace_reducer(broken)

    assert store.get_state() == 1
    assert store.dispatch(inc()) == 2


def test_replace_reducer_stays_installed_when_observer_dispatch_is_rejected() -> None:
    store = create_store(count)
    store.dispatch(inc())
    subscription = store.subscribe(lambda: store.dispatch(inc()))

    with pytest.raises(InProgressDispatchError):
        store.replace_reducer(tens)

    subscription()
    assert store.get_state() == 1
    assert store.dispatch(inc()) == 11


def test_malformed_dispatch_from_reducer_is_in_progress_error() -> None:
    holder: dict[str, Store[Any]] = {}

    def reducer(state: Any, action: Action[Any]) -> Any:
        if action.type == "NESTED":
            holder["store"].dispatch({"payload": 1})
        return count(state, action)

    store = create_store(reducer)
    holder["store"] = store

    with pytest.raises(InProgressDispatchError):
        store.dispatch(Action("NESTED"))

    assert store.get_state() == 0


def test_state_stream_emits_even_when_observer_raises() -> None:
    store = create_store(count)
    emitted: list[tuple[int, int]] = []
    store.select().subscribe(on_next=emitted.append)

    def broken() -> None:
        raise RuntimeError("observer failed")

    store.subscribe(broken)

    with pytest.raises(RuntimeError):
        store.dispatch(inc())

    assert emitted == [(0, 1)]


def test_concurrent_dispatch_from_other_thread_waits() -> None:
    entered = threading.Event()
    release = threading.Event()

    def reducer(state: Any, action: Action[Any]) -> Any:
        if state is None:
            return 0
        if action.type == "SLOW":
            entered.set()
            release.wait(5)
            return state + 1
        if action.type == "FAST":
            return state + 10
        return state

    store = create_store(reducer)
    errors: list[Exception] = []

    def run(action_type: str) -> None:
        try:
            store.dispatch(Action(action_type))
        except Exception as err:
            errors.append(err)

    slow = threading.Thread(target=run, args=("SLOW",))
    slow.start()
    assert entered.wait(5)

    fast = threading.Thread(target=run, args=("FAST",))
    fast.start()
    time.sleep(0.05)
    assert store.get_state() == 0

    release.set()
    slow.join(5)
    fast.join(5)

    assert errors == []
    assert store.get_state() == 11


def test_select_emits_old_and_new_selected_values() -> None:
    restock = create_action("RESTOCK")

    def reducer(state: Any, action: Action[Any]) -> Any:
        if state is None:
            return {"count": 0, "restocks": 0}
        if action.type == "INC":
            return {**state, "count": state["count"] + 1}
        if action.type == "RESTOCK":
            return {**state, "restocks": state["restocks"] + 1}
        return state

    store = create_store(reducer)
    emitted: list[tuple[int, int]] = []
    store.select(lambda s: s["count"]).subscribe(on_next=emitted.append)

    store.dispatch(inc())
    store.dispatch(restock())
    store.dispatch(inc())

    assert emitted == [(0, 1), (1, 2)]


def test_teardown_clears_observers_and_completes_stream() -> None:
    completed: list[bool] = []
    calls: list[int] = []

    with create_store(count) as store:
        store.subscribe(lambda: calls.append(1))
        store.select().subscribe(on_completed=lambda: completed.append(True))
        store.dispatch(inc())

    assert completed == [True]
    assert calls == [1]


def test_store_config_rejects_unknown_fields() -> None:
    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        StoreConfig(bogus=True)  # type: ignore[call-arg]


def test_errors_are_reported_to_error_handler_once() -> None:
    store = create_store(count, config=StoreConfig(name="reporting", log_errors=False))
    reported: list[Exception] = []
    store.error_handler.register_handler(reported.append)

    with pytest.raises(InvalidRequestError):
        store.dispatch({"payload": 1})

    assert len(reported) == 1
    assert isinstance(reported[0], InvalidRequestError)

"""
蛋糕店範例：兩個切片 reducer 組合成一棵狀態樹，訂閱後分發五個 action。
"""
import logging

from statebox import combine_reducers, create_action, create_reducer, create_store, on

logging.basicConfig(level=logging.INFO, format="%(message)s")
log = logging.getLogger("cake_shop")

# ============== Actions ==============
buy_cake = create_action("BUY_CAKE")
buy_ice_cream = create_action("BUY_ICECREAM")

# ============== Reducers ==============
cake_reducer = create_reducer(
    {"noOfCakes": 10},
    on(buy_cake, lambda state, action: {**state, "noOfCakes": state["noOfCakes"] - 1}),
)

ice_cream_reducer = create_reducer(
    {"noOfIceCreams": 20},
    on(buy_ice_cream, lambda state, action: {**state, "noOfIceCreams": state["noOfIceCreams"] - 1}),
)

root_reducer = combine_reducers({"cake": cake_reducer, "iceCream": ice_cream_reducer})


if __name__ == "__main__":
    store = create_store(root_reducer)
    log.info("Initial state %s", store.get_state())

    unsubscribe = store.subscribe(lambda: log.info("Updated state %s", store.get_state()))
    store.dispatch(buy_cake())
    store.dispatch(buy_cake())
    store.dispatch(buy_cake())
    store.dispatch(buy_ice_cream())
    store.dispatch(buy_ice_cream())
    unsubscribe()

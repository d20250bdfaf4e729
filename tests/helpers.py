from __future__ import annotations

from typing import Any

from statebox import Action, create_action

INC = "INC"

inc = create_action(INC)
noop = create_action("NOOP")


def count(state: int | None = None, action: Action[Any] | None = None) -> int:
    if state is None:
        state = 0
    if action is not None and action.type == INC:
        return state + 1
    return state



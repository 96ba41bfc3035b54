# worldmodel/model/state.py

import numbers
from enum import IntEnum
from typing import Union


class ObjectState(IntEnum):
    """
    Lifecycle state of a tracked object.

    Negative values are reserved for states that freeze the object against
    percept-driven updates. Only explicit requests may change such an object.
    """
    FIXED = -1
    ACTIVE = 0
    CONFIRMED = 1
    DISCARDED = 2

    @property
    def is_fixed(self) -> bool:
        return self.value < 0

    @property
    def is_matchable(self) -> bool:
        """Whether percepts may be associated with an object in this state."""
        return self is not ObjectState.DISCARDED


def parse_state(value: Union['ObjectState', int, str]) -> ObjectState:
    """
    Convert a state given as enum member, integer or name to an ObjectState.

    Args:
        value: State value, e.g. ObjectState.FIXED, -1 or 'fixed'

    Returns:
        Matching ObjectState

    Raises:
        ValueError: If the value does not name a known state
    """
    if isinstance(value, ObjectState):
        return value

    if isinstance(value, str):
        name = value.strip().upper()
        if name in ObjectState.__members__:
            return ObjectState[name]
        try:
            value = int(name)
        except ValueError:
            raise ValueError(f"Unknown object state: {value!r}")

    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"Unknown object state: {value!r}")

    # ObjectState(value) raises ValueError for unknown integers
    return ObjectState(int(value))

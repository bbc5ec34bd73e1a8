"""Ordered filter state layouts: sizes, start indices and bulk operations."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

import numpy as np

from fusioneval.statevars import (
    StateType,
    StateVar,
    core_state_length,
    correction_length,
    is_non_temporal_drifting,
    is_quaternion,
    state_length,
)

Counter = Callable[[Optional[StateVar]], int]

NO_STATE = -1
"""Index returned when no suitable state variable exists."""

CORE_ERROR_STATE_START = {"p": 0, "v": 3, "q": 6, "b_w": 9, "b_a": 12}
"""Required start indices of the core states in the error state."""


class IndexingError(ValueError):
    """The state variables are not laid out the way they must be."""


def _format_value(value: float) -> str:
    return f"{value:g}"


class StateLayout:
    """An ordered sequence of state variables forming one filter state.

    Every variable's ``name`` must equal its position in the sequence; the
    index computations check this and raise :class:`IndexingError` if not.
    """

    def __init__(self, variables: Iterable[StateVar]):
        self.variables = list(variables)
        for var in self.variables:
            if not isinstance(var, StateVar):
                raise TypeError("a state layout holds StateVar objects only")

    def __len__(self) -> int:
        return len(self.variables)

    def __iter__(self):
        return iter(self.variables)

    def _variable(self, name: int) -> StateVar:
        for var in self.variables:
            if var.name == name:
                return var
        raise KeyError(f"no state variable named {name}")

    def check_indexing(self) -> None:
        """Raise :class:`IndexingError` if a name differs from its position."""
        wrong = [
            (position, var.name)
            for position, var in enumerate(self.variables)
            if var.name != position
        ]
        if wrong:
            details = ", ".join(
                f"position {position} holds name {name}" for position, name in wrong
            )
            raise IndexingError(
                "the ordering of the state names is not the ordering of the "
                f"state variables: {details}"
            )

    def count(self, counter: Counter) -> int:
        """Sum ``counter`` over all variables."""
        self.check_indexing()
        return sum(counter(var) for var in self.variables)

    def start_index(self, name: int, counter: Counter) -> int:
        """Sum ``counter`` over the variables that precede ``name``."""
        self.check_indexing()
        offset = 0
        for var in self.variables:
            if var.name == name:
                return offset
            offset += counter(var)
        raise KeyError(f"no state variable named {name}")

    def state_index(self, name: int) -> int:
        """Start index of ``name`` in the state vector."""
        return self.start_index(name, state_length)

    def error_state_index(self, name: int) -> int:
        """Start index of ``name`` in the error state vector."""
        return self.start_index(name, correction_length)

    def best_non_temporal_drifting_index(self) -> int:
        """Name of the best non-temporal drifting state, or ``-1``.

        Quaternions are preferred over vectors; among equals the last one
        in the layout wins.
        """
        self.check_indexing()
        best = NO_STATE
        found_quaternion = False
        for var in self.variables:
            drifting = is_non_temporal_drifting(var)
            if drifting and is_quaternion(var):
                best = var.name
                found_quaternion = True
            elif drifting and not found_quaternion:
                best = var.name
        return best

    def reset(self) -> None:
        """Zero every vector and set every quaternion to the identity."""
        for var in self.variables:
            var.reset()

    @staticmethod
    def _copy_into(target: StateVar, source: StateVar) -> None:
        if (
            target.quaternion != source.quaternion
            or target.size_in_state != source.size_in_state
        ):
            raise ValueError(
                f"state variable {target.name} does not match its counterpart"
            )
        target.state = np.array(source.state, dtype=float)
        target.q_block = np.array(source.q_block, dtype=float)
        target.has_reset_value = source.has_reset_value

    def copy_init_states(self, old: "StateLayout") -> None:
        """Copy every variable of ``old`` that carries a reset value."""
        for var in self.variables:
            previous = old._variable(var.name)
            if previous.has_reset_value:
                self._copy_into(var, previous)

    def copy_non_propagation_states(self, old: "StateLayout") -> None:
        """Copy every variable from ``old`` that is not propagated."""
        for var in self.variables:
            if var.state_type is StateType.CORE_WITH_PROPAGATION:
                continue
            self._copy_into(var, old._variable(var.name))

    def copy_q_blocks(self, q) -> np.ndarray:
        """Return ``q`` with the auxiliary states' Q blocks on its diagonal."""
        n = self.count(correction_length)
        result = np.array(q, dtype=float)
        if result.shape != (n, n):
            raise ValueError(f"Q must be {n}x{n}, got {result.shape}")
        for var in self.variables:
            if var.state_type.is_core:
                continue
            start = self.error_state_index(var.name)
            size = var.size_in_correction
            result[start:start + size, start:start + size] = var.q_block
        return result

    def core_state_array(self) -> np.ndarray:
        """Return the values of the core states at their state indices."""
        data = np.zeros(self.count(core_state_length))
        for var in self.variables:
            if not var.state_type.is_core:
                continue
            start = self.state_index(var.name)
            end = start + var.size_in_state
            if end > data.size:
                raise IndexingError(
                    f"core state {var.name} lies behind an auxiliary state"
                )
            data[start:end] = var.state
        return data

    def full_state_array(self) -> np.ndarray:
        """Return the values of all variables as one flat vector."""
        data = np.zeros(self.count(state_length))
        for var in self.variables:
            start = self.state_index(var.name)
            data[start:start + var.size_in_state] = var.state
        return data

    def full_state_string(self) -> str:
        """Return one readable line per variable."""
        lines = []
        for var in self.variables:
            start = self.state_index(var.name)
            values = " ".join(_format_value(v) for v in var.state)
            if var.quaternion:
                lines.append(
                    f"{var.name} : [{start}-{start + 3}]\t : "
                    f"Quaternion (w,x,y,z) : [{values}]"
                )
            else:
                lines.append(
                    f"{var.name} : [{start}-{start + var.size - 1}]\t : "
                    f"Matrix<{var.size}, 1>         : [{values}]"
                )
        return "".join(line + "\n" for line in lines)

    def indices_in_error_state(self) -> list[tuple[int, int, int]]:
        """Return ``(name, start, length)`` for every variable's correction."""
        return [
            (var.name, self.error_state_index(var.name), var.size_in_correction)
            for var in self.variables
        ]


def assert_core_ordering(
    layout: StateLayout, p: int, v: int, q: int, b_w: int, b_a: int
) -> None:
    """Raise :class:`IndexingError` unless the core states start at 0, 3, 6, 9, 12."""
    names = {"p": p, "v": v, "q": q, "b_w": b_w, "b_a": b_a}
    for label, name in names.items():
        expected = CORE_ERROR_STATE_START[label]
        actual = layout.error_state_index(name)
        if actual != expected:
            raise IndexingError(
                f"core state {label} starts at {actual} in the error state, "
                f"but must start at {expected}"
            )
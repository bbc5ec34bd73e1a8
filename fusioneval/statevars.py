"""State variables of a filter state and the per-variable size rules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

QUATERNION_STATE_LENGTH = 4
QUATERNION_CORRECTION_LENGTH = 3


class StateType(enum.Enum):
    """Role of a state variable inside the filter state."""

    CORE_WITH_PROPAGATION = "core_with_propagation"
    CORE_WITHOUT_PROPAGATION = "core_without_propagation"
    AUXILIARY = "auxiliary"
    AUXILIARY_NON_TEMPORAL_DRIFTING = "auxiliary_non_temporal_drifting"

    @property
    def is_core(self) -> bool:
        return self in (
            StateType.CORE_WITH_PROPAGATION,
            StateType.CORE_WITHOUT_PROPAGATION,
        )


_IDENTITY_QUATERNION = (1.0, 0.0, 0.0, 0.0)


@dataclass(eq=False)
class StateVar:
    """One named variable of the filter state.

    A variable is either a column vector of ``size`` values or a unit
    quaternion stored as ``(w, x, y, z)``. ``name`` is the variable's
    number in the state definition, which must equal its position in the
    state. Quaternions are always corrected multiplicatively; vectors are
    corrected additively unless ``multiplicative`` is set, in which case
    the correction scales the state element-wise.
    """

    name: int
    size: int = 3
    quaternion: bool = False
    state_type: StateType = StateType.AUXILIARY
    multiplicative: bool = False
    state: Optional[np.ndarray] = None
    q_block: Optional[np.ndarray] = None
    has_reset_value: bool = False
    _initialised: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.state_type, StateType):
            raise TypeError("state_type must be a StateType")
        if self.quaternion:
            if self.multiplicative:
                raise ValueError(
                    "quaternion corrections are always multiplicative; "
                    "the option must not be set"
                )
            self.size = QUATERNION_STATE_LENGTH
        elif self.size < 1:
            raise ValueError("a vector state variable needs at least one entry")

        if self.state is None:
            self.reset()
        else:
            values = np.array(self.state, dtype=float).ravel()
            if values.shape != (self.size_in_state,):
                raise ValueError(
                    f"state must hold {self.size_in_state} values, "
                    f"got {values.size}"
                )
            self.state = values

        n = self.size_in_correction
        if self.q_block is None:
            self.q_block = np.zeros((n, n))
        else:
            block = np.array(self.q_block, dtype=float)
            if block.shape != (n, n):
                raise ValueError(f"Q block must be {n}x{n}, got {block.shape}")
            self.q_block = block
        self._initialised = True

    @property
    def size_in_state(self) -> int:
        """Number of values the variable takes in the state vector."""
        return QUATERNION_STATE_LENGTH if self.quaternion else self.size

    @property
    def size_in_correction(self) -> int:
        """Number of values the variable takes in the error state."""
        return QUATERNION_CORRECTION_LENGTH if self.quaternion else self.size

    def reset(self) -> None:
        """Set a vector to zero or a quaternion to the identity."""
        if self.quaternion:
            self.state = np.array(_IDENTITY_QUATERNION)
        else:
            self.state = np.zeros(self.size)


def correction_length(var: Optional[StateVar]) -> int:
    """Entries of ``var`` in the correction vector; ``None`` counts 0."""
    if var is None:
        return 0
    return var.size_in_correction


def state_length(var: Optional[StateVar]) -> int:
    """Entries of ``var`` in the state vector; ``None`` counts 0."""
    if var is None:
        return 0
    return var.size_in_state


def core_state_length(var: Optional[StateVar]) -> int:
    """State entries of ``var`` if it is a core state, else 0."""
    if var is None or not var.state_type.is_core:
        return 0
    return var.size_in_state


def core_error_state_length(var: Optional[StateVar]) -> int:
    """Error-state entries of ``var`` if it is a core state, else 0."""
    if var is None or not var.state_type.is_core:
        return 0
    return var.size_in_correction


def propagated_core_state_length(var: Optional[StateVar]) -> int:
    """State entries of ``var`` if it is a propagated core state, else 0."""
    if var is None or var.state_type is not StateType.CORE_WITH_PROPAGATION:
        return 0
    return var.size_in_state


def propagated_core_error_state_length(var: Optional[StateVar]) -> int:
    """Error-state entries of ``var`` if it is a propagated core state."""
    if var is None or var.state_type is not StateType.CORE_WITH_PROPAGATION:
        return 0
    return var.size_in_correction


def describe_type(var: StateVar) -> str:
    """Return a readable name of the variable's value type."""
    if var.quaternion:
        return "Quaterniond"
    return f"Matrix<double, {var.size}, 1>"


def is_quaternion(var: Optional[StateVar]) -> bool:
    """Tell whether ``var`` holds a quaternion; ``None`` does not."""
    return var is not None and var.quaternion


def is_non_temporal_drifting(var: Optional[StateVar]) -> bool:
    """Tell whether ``var`` is marked as non-temporal drifting."""
    return (
        var is not None
        and var.state_type is StateType.AUXILIARY_NON_TEMPORAL_DRIFTING
    )
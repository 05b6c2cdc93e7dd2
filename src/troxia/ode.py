'''Numeric ordinary differential equation containers
Expandable ODE made of one primary block and any number of secondary blocks'''

import numpy as np
from .errors import DimensionMismatchError


class ODEState:
    """
    Numeric state of an expandable ODE at one time.

    Parameters
    ----------
    time : float
        Integration time (offset from the integration origin) [s]
    primary_state : array-like
        Primary block
    secondary_states : sequence of array-like, optional
        Secondary blocks, in equation index order (index 1 first)
    """

    def __init__(self, time, primary_state, secondary_states=()):
        self.time = float(time)
        self.primary_state = np.array(primary_state, dtype=float)
        self.secondary_states = tuple(np.array(s, dtype=float) for s in secondary_states)

    @property
    def primary_state_dimension(self):
        return self.primary_state.size

    @property
    def number_of_secondary_states(self):
        return len(self.secondary_states)

    def get_secondary_state(self, index):
        """Secondary block ``index``, counted from 1 (0 is the primary block)."""
        if index == 0:
            return self.primary_state
        if index < 1 or index > len(self.secondary_states):
            raise IndexError(
                f"Secondary state index {index} out of range "
                f"[1, {len(self.secondary_states)}]")
        return self.secondary_states[index - 1]

    @property
    def complete_state_dimension(self):
        return self.primary_state.size + sum(s.size for s in self.secondary_states)

    @property
    def complete_state(self):
        return np.concatenate((self.primary_state,) + self.secondary_states)

    def __repr__(self):
        return (f"{type(self).__name__}(time={self.time}, "
                f"dimension={self.complete_state_dimension})")


class ODEStateAndDerivative(ODEState):
    """Numeric state together with its time derivative."""

    def __init__(self, time, primary_state, primary_derivative,
                 secondary_states=(), secondary_derivatives=()):
        super().__init__(time, primary_state, secondary_states)
        self.primary_derivative = (None if primary_derivative is None
                                   else np.array(primary_derivative, dtype=float))
        self.secondary_derivatives = tuple(np.array(s, dtype=float)
                                           for s in secondary_derivatives)

    def get_secondary_derivative(self, index):
        if index == 0:
            return self.primary_derivative
        if index < 1 or index > len(self.secondary_derivatives):
            raise IndexError(
                f"Secondary derivative index {index} out of range "
                f"[1, {len(self.secondary_derivatives)}]")
        return self.secondary_derivatives[index - 1]

    @property
    def complete_derivative(self):
        if self.primary_derivative is None:
            return None
        return np.concatenate((self.primary_derivative,) + self.secondary_derivatives)


class EquationsMapper:
    """
    Layout of the complete state vector.

    Block 0 is the primary block, blocks 1..N the secondary blocks, stored
    contiguously in that order.

    Parameters
    ----------
    dimensions : sequence of int
        Dimension of each block, primary first
    """

    def __init__(self, dimensions):
        self._dimensions = tuple(int(d) for d in dimensions)
        self._starts = np.concatenate(([0], np.cumsum(self._dimensions))).astype(int)

    @property
    def number_of_equations(self):
        return len(self._dimensions)

    @property
    def total_dimension(self):
        return int(self._starts[-1])

    def dimension(self, index):
        return self._dimensions[index]

    def equation_slice(self, index):
        return slice(self._starts[index], self._starts[index + 1])

    def extract_equation_data(self, index, complete):
        complete = np.asarray(complete)
        if complete.size != self.total_dimension:
            raise DimensionMismatchError(self.total_dimension, complete.size,
                                         what="complete state")
        return complete[self.equation_slice(index)]

    def insert_equation_data(self, index, data, complete):
        data = np.asarray(data, dtype=float).reshape(-1)
        if data.size != self._dimensions[index]:
            raise DimensionMismatchError(self._dimensions[index], data.size,
                                         what=f"equation {index} data")
        complete[self.equation_slice(index)] = data

    def map_state(self, t, y):
        y = np.asarray(y, dtype=float)
        blocks = [self.extract_equation_data(i, y) for i in range(self.number_of_equations)]
        return ODEState(t, blocks[0], blocks[1:])

    def map_state_and_derivative(self, t, y, y_dot):
        y = np.asarray(y, dtype=float)
        blocks = [self.extract_equation_data(i, y) for i in range(self.number_of_equations)]
        if y_dot is None:
            return ODEStateAndDerivative(t, blocks[0], None, blocks[1:])
        y_dot = np.asarray(y_dot, dtype=float)
        dots = [self.extract_equation_data(i, y_dot) for i in range(self.number_of_equations)]
        return ODEStateAndDerivative(t, blocks[0], dots[0], blocks[1:], dots[1:])

    def __eq__(self, other):
        return isinstance(other, EquationsMapper) and self._dimensions == other._dimensions

    def __hash__(self):
        return hash(self._dimensions)

    def __repr__(self):
        return f"EquationsMapper(dimensions={list(self._dimensions)})"


class OrdinaryDifferentialEquation:
    """Primary block interface: dy/dt = f(t, y)."""

    def get_dimension(self):
        raise NotImplementedError

    def init(self, t0, y0, final_time):
        pass

    def compute_derivatives(self, t, y):
        raise NotImplementedError


class SecondaryODE:
    """Secondary block interface: ds/dt = f(t, y, dy/dt, s)."""

    def get_dimension(self):
        raise NotImplementedError

    def init(self, t0, primary0, secondary0, final_time):
        pass

    def compute_derivatives(self, t, primary, primary_dot, secondary):
        raise NotImplementedError


class ExpandableODE:
    """
    Primary ODE extended with secondary blocks integrated alongside.

    Secondary blocks see the primary state and its derivative but never
    each other.

    Parameters
    ----------
    primary : OrdinaryDifferentialEquation
    """

    def __init__(self, primary):
        self._primary = primary
        self._components = []
        self._mapper = EquationsMapper([primary.get_dimension()])

    @property
    def primary(self):
        return self._primary

    @property
    def mapper(self):
        return self._mapper

    def add_secondary_equations(self, secondary):
        """
        Add a secondary block.

        Returns
        -------
        int
            Index of the new block (1 for the first secondary block)
        """
        self._components.append(secondary)
        dimensions = [self._primary.get_dimension()]
        dimensions += [c.get_dimension() for c in self._components]
        self._mapper = EquationsMapper(dimensions)
        return len(self._components)

    def get_secondary(self, index):
        return self._components[index - 1]

    def init(self, s0, final_time):
        """Check the initial state layout and initialize every block."""
        if s0.number_of_secondary_states != len(self._components):
            raise DimensionMismatchError(len(self._components),
                                         s0.number_of_secondary_states,
                                         what="number of secondary states")
        if s0.primary_state_dimension != self._mapper.dimension(0):
            raise DimensionMismatchError(self._mapper.dimension(0),
                                         s0.primary_state_dimension,
                                         what="primary state")
        self._primary.init(s0.time, s0.primary_state, final_time)
        for index, component in enumerate(self._components, start=1):
            secondary0 = s0.get_secondary_state(index)
            if secondary0.size != self._mapper.dimension(index):
                raise DimensionMismatchError(self._mapper.dimension(index),
                                             secondary0.size,
                                             what=f"secondary state {index}")
            component.init(s0.time, s0.primary_state, secondary0, final_time)

    def compute_derivatives(self, t, y):
        """Derivative of the complete state vector."""
        y = np.asarray(y, dtype=float)
        if y.size != self._mapper.total_dimension:
            raise DimensionMismatchError(self._mapper.total_dimension, y.size,
                                         what="complete state")
        y_dot = np.empty(self._mapper.total_dimension)

        primary = self._mapper.extract_equation_data(0, y)
        primary_dot = np.asarray(self._primary.compute_derivatives(t, primary),
                                 dtype=float)
        self._mapper.insert_equation_data(0, primary_dot, y_dot)

        for index, component in enumerate(self._components, start=1):
            secondary = self._mapper.extract_equation_data(index, y)
            secondary_dot = component.compute_derivatives(t, primary, primary_dot, secondary)
            self._mapper.insert_equation_data(index, secondary_dot, y_dot)

        return y_dot

'''Step handlers receiving the propagated trajectory step by step
StepHandler, StepInterpolator, FixedStepHandler and StepNormalizer definitions'''


class StepInterpolator:
    """
    Spacecraft state interpolator over one accepted propagation step.

    Attributes
    ----------
    previous_state : SpacecraftState
        State at the start of the (possibly restricted) step
    current_state : SpacecraftState
        State at the end of the (possibly restricted) step
    is_forward : bool
        True if the propagation goes forward in time
    """

    @property
    def previous_state(self):
        raise NotImplementedError

    @property
    def current_state(self):
        raise NotImplementedError

    @property
    def is_forward(self):
        raise NotImplementedError

    def get_interpolated_state(self, date):
        """State at any date of the step."""
        raise NotImplementedError

    def restrict_step(self, previous_state, current_state):
        """Same step with bounds narrowed to two states inside it."""
        raise NotImplementedError


class StepHandler:
    """Receives every accepted step of a propagation."""

    def init(self, initial_state, target):
        pass

    def handle_step(self, interpolator):
        raise NotImplementedError

    def finish(self, final_state):
        pass


class FixedStepHandler:
    """Receives states sampled on a fixed time grid (see StepNormalizer)."""

    def init(self, initial_state, target, step):
        pass

    def handle_step(self, state, is_last):
        raise NotImplementedError

    def finish(self, final_state):
        pass


class StepNormalizer(StepHandler):
    """
    Adapt variable propagation steps to a fixed step handler.

    States are sampled on the grid ``t0 + k*h`` (``t0 - k*h`` backward)
    anchored at the initial date of the leg. The final state is always
    handed over last, with ``is_last=True``, even when it falls between
    grid points.

    Parameters
    ----------
    h : float
        Sampling step [s], positive whatever the propagation direction
    handler : FixedStepHandler
    """

    def __init__(self, h, handler):
        h = float(h)
        if h <= 0:
            raise ValueError(f"Normalized step must be positive, got {h}")
        self._h = h
        self._handler = handler
        self._t0 = None
        self._count = 0
        self._last_state = None

    @property
    def step(self):
        return self._h

    @property
    def handler(self):
        return self._handler

    def init(self, initial_state, target):
        self._t0 = initial_state.date
        self._count = 0
        self._last_state = None
        self._handler.init(initial_state, target, self._h)

    def handle_step(self, interpolator):
        if self._last_state is None:
            self._last_state = interpolator.previous_state
        step = self._h if interpolator.is_forward else -self._h
        sign = 1.0 if interpolator.is_forward else -1.0
        end = interpolator.current_state.date

        next_date = self._t0 + (self._count + 1) * step
        while sign * (next_date - end) <= 0:
            self._handler.handle_step(self._last_state, False)
            self._last_state = interpolator.get_interpolated_state(next_date)
            self._count += 1
            next_date = self._t0 + (self._count + 1) * step

    def finish(self, final_state):
        if self._last_state is not None and self._last_state.date != final_state.date:
            self._handler.handle_step(self._last_state, False)
        self._handler.handle_step(final_state, True)
        self._handler.finish(final_state)
        self._last_state = None

    def __repr__(self):
        return f"StepNormalizer(h={self._h}, handler={self._handler!r})"

"""
Exception hierarchy for the Troxia package.

Every error raised deliberately by troxia derives from TroxiaError. Each
subclass also derives from the builtin exception a caller would naturally
expect (ValueError, RuntimeError, ...), so ``except ValueError`` keeps
working for code written against plain numpy/scipy conventions.
"""


class TroxiaError(Exception):
    """Base class of all troxia errors."""


# ========== CONFIGURATION ERRORS ==========

class ConfigurationError(TroxiaError, ValueError):
    """Fatal misconfiguration detected at the call that uses it."""


class MissingInitialStateError(ConfigurationError):
    """Propagation requested before any initial state was set."""

    def __init__(self, message="Initial state not specified for orbit propagation"):
        super().__init__(message)


class NameConflictError(ConfigurationError):
    """An additional state name is reserved or already managed."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Name '{name}' is already in use for an additional state")


class UnsupportedMapperError(ConfigurationError):
    """The requested state mapper parameter combination is not supported."""


class MissingAdditionalStateError(ConfigurationError, KeyError):
    """An additional state required by a generator or a query is absent."""

    def __init__(self, name, message=None):
        self.name = name
        if message is None:
            message = f"Unknown additional state '{name}'"
        super().__init__(message)

    def __str__(self):
        # KeyError.__str__ would quote the whole message
        return str(self.args[0])


# ========== PHYSICAL INVARIANT ERRORS ==========

class PhysicalInvariantError(TroxiaError, ValueError):
    """A physical invariant is violated; the current call is aborted."""


class NonPositiveMassError(PhysicalInvariantError):
    """Spacecraft mass is not strictly positive (NaN included)."""

    def __init__(self, mass):
        self.mass = mass
        super().__init__(f"Spacecraft mass must be positive, got {mass} kg")


class InconsistentEpochError(PhysicalInvariantError):
    """Two pieces of data that must share an epoch do not."""

    def __init__(self, expected, actual, what="date"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Inconsistent {what}: expected epoch {expected}, got {actual}"
        )


# ========== NUMERICAL ERRORS ==========

class SingularRepresentationError(TroxiaError, ArithmeticError):
    """Orbit conversion is singular for the requested representation."""


class IntegrationError(TroxiaError, RuntimeError):
    """The numerical integrator failed (solver failure, step underflow, root finding)."""


class DimensionMismatchError(TroxiaError, ValueError):
    """Array dimensions are inconsistent with the declared equations."""

    def __init__(self, expected, actual, what="state"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Dimension mismatch for {what}: {actual} != {expected}")


# ========== EPHEMERIS ERRORS ==========

class EphemerisRangeError(TroxiaError, ValueError):
    """Ephemeris queried outside its validity interval."""

    def __init__(self, date, min_date, max_date):
        self.date = date
        self.min_date = min_date
        self.max_date = max_date
        super().__init__(
            f"Date {date} is outside ephemeris validity interval "
            f"[{min_date}, {max_date}]"
        )

"""Exception hierarchy for hanyut."""


class HanyutError(Exception):
    """Base class for all hanyut errors."""


class ConfigurationError(HanyutError, ValueError):
    """Inconsistent arrays, positions or settings supplied at construction."""


class DomainError(HanyutError):
    """A position cannot be resolved on any tile of the flow field."""


class NumericalError(HanyutError):
    """The integrator failed or produced non-finite states."""


class MissingDataError(HanyutError):
    """Source velocity or tracer values are missing (NaN)."""

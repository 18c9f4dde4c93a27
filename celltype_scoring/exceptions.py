"""Exception types raised by the scoring engine."""


class ScoringError(Exception):
    """Base class for all scoring engine errors."""

    pass


class ConfigurationError(ScoringError):
    """Raised when the marker database or tissue selection is unusable.

    Examples: a tissue that is not in the database, a malformed marker
    table, or a cell type listing the same gene as positive and negative.
    """

    pass


class PreconditionError(ScoringError):
    """Raised when scoring is requested on data declared as unscaled."""

    pass


class InputMismatchError(ScoringError):
    """Raised when a cluster assignment references cells that were not scored."""

    pass

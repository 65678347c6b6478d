"""Exceptions raised by AnxMeta."""


class AnxMetaError(Exception):
    """Base class for all errors raised by the analysis engine."""

    pass


class InvalidRecordError(AnxMetaError, ValueError):
    """Raised when a study record has a non-finite effect or an unusable standard error."""

    pass


class InsufficientDataError(AnxMetaError, ValueError):
    """Raised when too few studies remain to fit the requested model."""

    pass


class NonConvergentEstimationError(AnxMetaError, RuntimeError):
    """Raised when an iterative estimator exhausts its iteration budget."""

    pass


class NonConvergentTrimFillError(NonConvergentEstimationError):
    """Raised when the trim-and-fill estimate of missing studies never stabilizes."""

    pass


class NonConvergentOutlierRemovalError(AnxMetaError, RuntimeError):
    """Raised when outliers are still flagged after the last allowed removal round."""

    pass


class InsufficientLevelsError(AnxMetaError, ValueError):
    """Raised when a moderator takes fewer than two distinct values."""

    pass


class MissingCovariateError(AnxMetaError, KeyError):
    """Raised when a moderator is not present in any of the records."""

    pass

"""
Exception and warning types raised by the severity analysis pipeline.

Fatal problems (bad configuration, misaligned inputs) raise exceptions that
abort a run. Problems confined to a single regulator or entity are either
warnings or errors that are caught at the per-entity boundary and reported
next to the successful results.
"""


class SeverityAnalysisError(Exception):
    """Base class for all errors raised by severity_rnaseq."""


class ConfigurationError(SeverityAnalysisError, ValueError):
    """An invalid namespace, column name or configuration value was requested."""


class ShapeMismatchError(SeverityAnalysisError, ValueError):
    """Matrix columns, metadata rows or group labels do not line up."""


class InsufficientDataError(SeverityAnalysisError):
    """
    An entity has too few observations for the statistical battery.

    Attributes:
        entity: Identifier of the entity that could not be tested.
        group_counts: Non-missing observations per group for that entity.
    """

    def __init__(self, entity, message, group_counts=None):
        super().__init__(f"{entity}: {message}")
        self.entity = entity
        self.message = message
        self.group_counts = dict(group_counts or {})

    def __reduce__(self):
        # results travel between joblib worker processes
        return (self.__class__, (self.entity, self.message, self.group_counts))


class RegulatorExcludedWarning(UserWarning):
    """A regulator could not be scored and is absent from the activity table."""

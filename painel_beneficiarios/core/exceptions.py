# core/exceptions.py


class PainelError(Exception):
    """Base class for errors raised while building a report."""


class ValidationError(PainelError):
    """A required parameter is missing or malformed. Raised before any query runs."""


class DataSourceError(PainelError):
    """The underlying storage or query engine failed."""

"""Error kinds raised by the retrieval core.

An empty hit list is never an error; these cover the cases where a query
cannot be answered at all.
"""


class RetrievalError(Exception):
    """Base class for failures that abort retrieval for a query."""


class ConfigurationError(RetrievalError):
    """No usable embedding provider, or inconsistent embedding dimensions."""


class ProviderError(RetrievalError):
    """An embedding provider or document store call failed."""

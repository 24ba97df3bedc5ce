"""Provider error types."""


class ProviderError(Exception):
    """Base class for provider errors."""


class DatasetFormatError(ProviderError):
    """Raised when a dataset shard has an unknown format or a garbled payload."""


class IntegrationError(ProviderError):
    """Hosting bug, such as a second provider instance. Fatal."""

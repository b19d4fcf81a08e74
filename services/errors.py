"""Exceptions raised by the external-service clients."""


class ConfigurationError(Exception):
    """Raised at construction when a required credential or setting is missing."""
    pass


class EmbeddingServiceError(Exception):
    """Raised when an embedding call fails or returns an unusable response."""
    pass


class LLMClientError(Exception):
    """Base exception for text-generation client errors."""
    pass


class LLMResponseError(LLMClientError):
    """Raised when the model returns an empty or unparseable response."""
    pass

"""
Error types shared across the orchestrator, its stores and the HTTP surface.

Remote failures raised by the model, embedding or tool libraries are not
wrapped here: they reach the caller as raised.
"""


class BotterError(Exception):
    """Base class for botter errors"""


class InvalidInputError(BotterError):
    """Raised when a turn is rejected before any I/O (e.g. empty session id)"""


class ConfigurationError(BotterError):
    """Raised at startup when the configured components cannot work together"""


class RemoteServiceError(BotterError):
    """Raised when a remote collaborator fails in a way botter reports itself"""


class SummarizationError(RemoteServiceError):
    """Raised when history compaction could not obtain a summary"""

"""Exceptions raised by the prep pipeline, the asset loader and the zone tool."""

from typing import Optional


class LazyDMError(Exception):
    pass


class ConfigurationError(LazyDMError):
    """No API key (or other required setting) configured."""


class TransportError(LazyDMError):
    def __init__(self, message: str, status_code: Optional[int] = None, snippet: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.snippet = snippet


class NetworkError(LazyDMError):
    pass


class UnsupportedTypeError(LazyDMError):
    pass


class FileTooLargeError(LazyDMError):
    def __init__(self, message: str, size_bytes: int, max_bytes: int):
        super().__init__(message)
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)


class ExtractionFailedError(LazyDMError):
    pass


class EmptyAssetSetError(LazyDMError):
    pass


class PrepAlreadyRunningError(LazyDMError):
    pass


class AnnotationStateError(LazyDMError):
    pass

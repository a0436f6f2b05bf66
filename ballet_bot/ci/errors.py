"""Errors raised by CI status providers."""

from __future__ import annotations


class CIProviderError(RuntimeError):
    """Raised when build information cannot be retrieved."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, build_id: str, status_code: int) -> CIProviderError:
        """Return an error for a non-2xx response when fetching a build."""
        return cls(
            f"Travis build {build_id} lookup failed with HTTP {status_code}",
            status_code=status_code,
        )

    @classmethod
    def unreachable(cls, build_id: str, exc: Exception) -> CIProviderError:
        """Return an error for a request that never produced a response."""
        return cls(f"Travis build {build_id} lookup failed: {exc}")

    @classmethod
    def malformed(cls, build_id: str, detail: object) -> CIProviderError:
        """Return an error for a build payload with an unexpected shape."""
        return cls(f"Travis build {build_id} payload has unexpected shape: {detail}")

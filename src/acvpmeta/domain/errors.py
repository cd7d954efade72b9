"""Error taxonomy shared by the reconciliation core and its adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ReconciliationError(RuntimeError):
    """Base class for failures while reconciling definitions."""


class ConfigError(ReconciliationError):
    """Raised when settings or a definition's backing store cannot be located or read."""


class MissingConfigurationError(ConfigError):
    """Raised when required environment variables are absent or blank."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")


class NetworkError(ReconciliationError):
    """Raised when the registry cannot be reached after retries are exhausted."""


class RegistryAPIError(NetworkError):
    """Raised when the registry answers with an HTTP error status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class SchemaError(ReconciliationError):
    """Raised when a registry document lacks a field or carries the wrong JSON type."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PersistError(ReconciliationError):
    """Raised when identifiers could not be written back to durable storage.

    The in-memory identifiers stay mutated; a re-run is needed to converge the local
    files with the registry.
    """


class ReconciliationAborted(ReconciliationError):  # noqa: N818
    """Raised when the user declined every offered action for an entity."""

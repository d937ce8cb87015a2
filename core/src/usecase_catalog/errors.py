"""Error taxonomy shared by the auth gate, the pagination proxy and the loader."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for errors raised by the catalog service."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self.args[0])


class Unauthorized(CatalogError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"

    # "missing" or "invalid"; kept separate so logs can tell them apart.
    reason: str = "invalid"


class MissingCredential(Unauthorized):
    reason = "missing"
    default_message = "Unauthorized: Missing authentication token"


class InvalidCredential(Unauthorized):
    reason = "invalid"
    default_message = "Unauthorized: Invalid token"


class UpstreamError(CatalogError):
    """The upstream API failed, or could not be reached when status is None."""

    code = "upstream_error"
    default_message = "Upstream API error"

    def __init__(self, status: int | None = None, message: str | None = None) -> None:
        if message is None:
            message = (
                f"External API error: {status}" if status is not None else self.default_message
            )
        super().__init__(message)
        self.status = status


class InternalError(CatalogError):
    pass

"""Domain errors raised by the marketplace services.

Routes never build error responses by hand: the handlers registered in
``freight_market.app.main`` turn these into ``{"ok": false, "error": ...}``.
"""


class MarketError(Exception):
    """Base class for errors reported to API callers."""

    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MarketError):
    """Missing required field or unrecognised enum value."""

    status_code = 400


class NotFoundError(MarketError):
    """Unknown entity id."""

    status_code = 404


class ConflictError(MarketError):
    """Operation not valid for the entity's current state."""

    status_code = 409


class AuthorizationError(MarketError):
    """Missing session (401) or access by a non-member / wrong role (403)."""

    status_code = 401

    def __init__(self, message: str, forbidden: bool = False):
        super().__init__(message)
        if forbidden:
            self.status_code = 403

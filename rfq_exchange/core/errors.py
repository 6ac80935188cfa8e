from __future__ import annotations


class TenderExchangeError(Exception):
    """
    Base class for business-rule refusals.

    These are caller errors, never retried by the core. Infrastructure failures
    (database down, lost connection) are NOT subclasses and surface as 500s.
    """

    code = "error"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(TenderExchangeError):
    code = "not_found"
    http_status = 404


class Forbidden(TenderExchangeError):
    code = "forbidden"
    http_status = 403


class InvalidState(TenderExchangeError):
    code = "invalid_state"
    http_status = 409


class TenderClosed(TenderExchangeError):
    code = "tender_closed"
    http_status = 409


class TooEarly(TenderExchangeError):
    code = "too_early"
    http_status = 409


class DuplicateBid(TenderExchangeError):
    code = "duplicate_bid"
    http_status = 409


class InvalidInput(TenderExchangeError):
    code = "invalid_input"
    http_status = 422


class InvalidBid(TenderExchangeError):
    code = "invalid_bid"
    http_status = 422


class Conflict(TenderExchangeError):
    code = "conflict"
    http_status = 409

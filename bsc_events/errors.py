import json
from enum import Enum

import requests
from web3.exceptions import ContractLogicError, TimeExhausted

# Phrases seen from BSC dataseed / load-balanced providers under load, e.g.
#   'Invalid JSON RPC response: "upstream request timeout"'
#   'Invalid JSON RPC response: ""'
TRANSIENT_MESSAGES = (
    "upstream request timeout",
    "invalid json rpc response",
    "header not found",
    "request timed out",
    "too many requests",
    "rate limit",
)

TRANSIENT_HTTP_STATUS = (429, 500, 502, 503, 504)


class FetchErrorKind(str, Enum):
    TRANSIENT = "TRANSIENT"
    FATAL = "FATAL"


class FetchError(Exception):
    """
    Failure of a single sub-range fetch, tagged with how the caller
    should treat it.
    """

    def __init__(self, message: str, kind: FetchErrorKind = FetchErrorKind.FATAL):
        super().__init__(message)
        self.kind = kind

    @property
    def transient(self) -> bool:
        return self.kind == FetchErrorKind.TRANSIENT


class TransientFetchError(FetchError):
    def __init__(self, message: str):
        super().__init__(message, FetchErrorKind.TRANSIENT)


class FatalFetchError(FetchError):
    def __init__(self, message: str):
        super().__init__(message, FetchErrorKind.FATAL)


class RetryExhaustedError(FatalFetchError):
    def __init__(self, start_block: int, end_block: int, attempts: int):
        super().__init__(
            f"retry exhausted after {attempts} attempts: {start_block}-{end_block}"
        )
        self.start_block = start_block
        self.end_block = end_block
        self.attempts = attempts


def classify_exception(exc: Exception) -> FetchErrorKind:
    """
    Decide whether a raw transport exception is worth retrying unchanged.

    Typed exceptions are checked first; the message substrings only cover
    providers that report infrastructure failures as JSON-RPC errors.
    """
    if isinstance(exc, FetchError):
        return exc.kind

    if isinstance(exc, ContractLogicError):
        return FetchErrorKind.FATAL

    if isinstance(exc, (requests.exceptions.Timeout, requests.exceptions.ConnectionError, TimeExhausted)):
        return FetchErrorKind.TRANSIENT

    if isinstance(exc, requests.exceptions.HTTPError):
        response = exc.response
        if response is not None and response.status_code in TRANSIENT_HTTP_STATUS:
            return FetchErrorKind.TRANSIENT
        return FetchErrorKind.FATAL

    # empty body from a proxied node
    if isinstance(exc, json.JSONDecodeError):
        return FetchErrorKind.TRANSIENT

    message = str(exc).lower()
    if any(phrase in message for phrase in TRANSIENT_MESSAGES):
        return FetchErrorKind.TRANSIENT

    return FetchErrorKind.FATAL


def as_fetch_error(exc: Exception) -> FetchError:
    if isinstance(exc, FetchError):
        return exc

    message = str(exc)[:200] or type(exc).__name__
    if classify_exception(exc) == FetchErrorKind.TRANSIENT:
        error = TransientFetchError(message)
    else:
        error = FatalFetchError(message)
    error.__cause__ = exc
    return error

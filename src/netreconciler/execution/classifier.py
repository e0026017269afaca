"""Classification of remote failures into retryable and terminal classes."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from netreconciler.config.settings import DEFAULT_TRANSIENT_SIGNATURES
from netreconciler.core.errors import (
    APIError,
    ConflictError,
    NotFoundError,
    RetriesExhaustedError,
)


class ErrorClass(str, Enum):
    TRANSIENT = "transient"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FATAL = "fatal"


def matches_signature(text: str, signatures: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(sig.lower() in lowered for sig in signatures if sig)


def classify(
    error: BaseException,
    signatures: Iterable[str] = DEFAULT_TRANSIENT_SIGNATURES,
) -> ErrorClass:
    """Classify a failure raised by a control-plane call.

    Only fabric-contention messages are transient, whatever status the
    platform attached to them. A ``TransientAPIError`` has already been
    retried by the HTTP layer, so it is fatal here.
    """
    if isinstance(error, RetriesExhaustedError):
        return ErrorClass.FATAL
    text = str(error)
    if isinstance(error, APIError) and error.remote_error:
        text = f"{text} {error.remote_error}"
    if matches_signature(text, signatures):
        return ErrorClass.TRANSIENT
    if isinstance(error, NotFoundError):
        return ErrorClass.NOT_FOUND
    if isinstance(error, ConflictError):
        return ErrorClass.CONFLICT
    return ErrorClass.FATAL


def is_transient(
    error: BaseException,
    signatures: Iterable[str] = DEFAULT_TRANSIENT_SIGNATURES,
) -> bool:
    return classify(error, signatures) is ErrorClass.TRANSIENT

"""Tests for exception utilities."""

import pytest
from fastapi import HTTPException, status

from finance_tracker.utils.exceptions import (
    raise_bad_request,
    raise_conflict,
    raise_internal_error,
    raise_not_found,
    raise_too_many_requests,
    raise_unauthorized,
)


def test_raise_not_found():
    """
    GIVEN a resource name
    WHEN raise_not_found is called
    THEN it should raise HTTPException with 404 status
    """
    with pytest.raises(HTTPException) as exc_info:
        raise_not_found("Transaction")

    assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND
    assert exc_info.value.detail == "Transaction not found"


def test_raise_not_found_with_cause():
    cause = LookupError("missing row")

    with pytest.raises(HTTPException) as exc_info:
        raise_not_found("Transaction", cause=cause)

    assert exc_info.value.__cause__ is cause


def test_raise_bad_request():
    """
    GIVEN a detail message
    WHEN raise_bad_request is called
    THEN it should raise HTTPException with 400 status
    """
    with pytest.raises(HTTPException) as exc_info:
        raise_bad_request("Transfer requires a destination account")

    assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST
    assert exc_info.value.detail == "Transfer requires a destination account"


def test_raise_unauthorized_sets_header():
    with pytest.raises(HTTPException) as exc_info:
        raise_unauthorized("Could not validate credentials")

    assert exc_info.value.status_code == status.HTTP_401_UNAUTHORIZED
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


def test_raise_too_many_requests():
    """
    GIVEN a detail and retry-after seconds
    WHEN raise_too_many_requests is called
    THEN it should raise 429 with a Retry-After header
    """
    with pytest.raises(HTTPException) as exc_info:
        raise_too_many_requests("Monthly transaction limit reached", retry_after=60)

    assert exc_info.value.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert exc_info.value.headers == {"Retry-After": "60"}


def test_raise_too_many_requests_without_retry_after():
    with pytest.raises(HTTPException) as exc_info:
        raise_too_many_requests("Monthly transaction limit reached")

    assert exc_info.value.headers is None


def test_raise_internal_error():
    cause = RuntimeError("dangling account")

    with pytest.raises(HTTPException) as exc_info:
        raise_internal_error("Failed to record transaction", cause=cause)

    assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert exc_info.value.detail == "Failed to record transaction"
    assert exc_info.value.__cause__ is cause


def test_raise_conflict():
    with pytest.raises(HTTPException) as exc_info:
        raise_conflict("Transaction was modified concurrently")

    assert exc_info.value.status_code == status.HTTP_409_CONFLICT
    assert exc_info.value.detail == "Transaction was modified concurrently"

"""Unit tests for wallet identifier derivation."""

import hashlib

import pytest
from services.loyalty_service.errors import WalletConfigurationError
from services.loyalty_service.services.identity import (
    GOOGLE_OBJECT_ID_PATTERN,
    derive_apple_serial,
    derive_google_object_id,
    google_class_id,
)

ISSUER_ID = "3388000000023063726"
CUSTOMER_ID = "422fb5cb-7ba6-4f31-9a3e-1c2d3e4f5a6b"


@pytest.mark.unit
def test_apple_serial_is_customer_id():
    assert derive_apple_serial(CUSTOMER_ID) == CUSTOMER_ID


@pytest.mark.unit
def test_google_object_id_is_issuer_plus_hash_prefix():
    expected_suffix = hashlib.sha256(CUSTOMER_ID.encode()).hexdigest()[:16]

    object_id = derive_google_object_id(CUSTOMER_ID, ISSUER_ID)

    assert object_id == f"{ISSUER_ID}.{expected_suffix}"
    assert GOOGLE_OBJECT_ID_PATTERN.match(object_id)


@pytest.mark.unit
def test_google_object_id_is_deterministic_and_distinct():
    first = derive_google_object_id(CUSTOMER_ID, ISSUER_ID)
    again = derive_google_object_id(CUSTOMER_ID, ISSUER_ID)
    other = derive_google_object_id("someone-else@example.com", ISSUER_ID)

    assert first == again
    assert first != other


@pytest.mark.unit
def test_invalid_issuer_is_configuration_error():
    with pytest.raises(WalletConfigurationError):
        derive_google_object_id(CUSTOMER_ID, "bad issuer!")


@pytest.mark.unit
@pytest.mark.parametrize(
    "suffix,expected",
    [
        ("loyaltyvigocoffee", f"{ISSUER_ID}.loyaltyvigocoffee"),
        (f"{ISSUER_ID}.loyalty_vigo", f"{ISSUER_ID}.loyalty_vigo"),
        ("loyalty vigo!coffee", f"{ISSUER_ID}.loyaltyvigocoffee"),
        ("a!", f"{ISSUER_ID}.loyaltyvigocoffee"),
        ("", f"{ISSUER_ID}.loyaltyvigocoffee"),
        ("x" * 60, f"{ISSUER_ID}.{'x' * 50}"),
    ],
)
def test_google_class_id_normalization(suffix, expected):
    assert google_class_id(ISSUER_ID, suffix) == expected

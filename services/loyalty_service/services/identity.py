"""Wallet identifiers derived from the customer id.

Both identifiers are pure functions of the customer id, so no mapping table
is needed: the same customer always lands on the same pass in both wallets.
"""

import hashlib
import re

from services.loyalty_service.errors import WalletConfigurationError

GOOGLE_OBJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+\.[A-Za-z0-9._-]+$")
GOOGLE_OBJECT_SUFFIX_LENGTH = 16

DEFAULT_CLASS_SUFFIX = "loyaltyvigocoffee"
_CLASS_SUFFIX_INVALID = re.compile(r"[^A-Za-z0-9._-]")
_CLASS_SUFFIX_MAX_LENGTH = 50


def derive_apple_serial(customer_id: str) -> str:
    """Apple Wallet serial number: the customer id, verbatim."""
    return customer_id


def google_object_suffix(customer_id: str) -> str:
    digest = hashlib.sha256(customer_id.encode("utf-8")).hexdigest()
    return digest[:GOOGLE_OBJECT_SUFFIX_LENGTH]


def validate_google_resource_id(resource_id: str) -> str:
    if not GOOGLE_OBJECT_ID_PATTERN.match(resource_id):
        raise WalletConfigurationError(
            f"Invalid Google Wallet resource id {resource_id!r}: "
            "expected {issuerId}.{alphanumeric suffix}"
        )
    return resource_id


def derive_google_object_id(customer_id: str, issuer_id: str) -> str:
    """Google Wallet object id: ``{issuer_id}.{sha256(customer_id)[:16]}``.

    The hex suffix keeps the id valid whatever the customer id looks like
    (UUIDs with hyphens, emails, ...). An invalid result can only come from a
    bad issuer id, which is a configuration problem.
    """
    return validate_google_resource_id(
        f"{issuer_id}.{google_object_suffix(customer_id)}"
    )


def google_class_id(issuer_id: str, class_suffix: str) -> str:
    """Full loyalty class resource id (``{issuer_id}.{suffix}``).

    Accepts either a bare suffix or a full resource id copied from the
    Google Wallet console.
    """
    suffix = class_suffix or DEFAULT_CLASS_SUFFIX
    if suffix.startswith(f"{issuer_id}."):
        suffix = suffix[len(issuer_id) + 1:]
    suffix = _CLASS_SUFFIX_INVALID.sub("", suffix)
    if len(suffix) < 3:
        suffix = DEFAULT_CLASS_SUFFIX
    suffix = suffix[:_CLASS_SUFFIX_MAX_LENGTH]
    return validate_google_resource_id(f"{issuer_id}.{suffix}")

"""Credential store services: principal creation and verification.

Hashing is delegated to Django's password hashers (scrypt first, see
``PASSWORD_HASHERS``); this module never computes a hash itself.
"""

import base64
import binascii
import logging
from typing import NamedTuple

from django.contrib.auth.hashers import check_password, make_password
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from accounts.models import Principal
from common.exceptions import Unauthorized

logger = logging.getLogger(__name__)


class Credentials(NamedTuple):
    """What a requester presents to prove it is a known principal."""

    principal_id: str
    secret: str


def _verify_basic(principal, presented_secret):
    return check_password(presented_secret, principal.secret_data)


def _hash_basic(secret):
    return make_password(secret)


# Closed set of supported schemes. Adding one means adding a Principal.Scheme
# choice plus an entry in both tables; token logic is untouched.
SCHEME_VERIFIERS = {
    Principal.Scheme.BASIC: _verify_basic,
}

SCHEME_HASHERS = {
    Principal.Scheme.BASIC: _hash_basic,
}


def create_principal(principal_id, secret, scheme=Principal.Scheme.BASIC):
    """Create a principal with a hashed secret.

    Args:
        principal_id: Unique identifier (the basic-auth username).
        secret: Cleartext secret; only its hash is stored.
        scheme: A ``Principal.Scheme`` value.

    Returns:
        The created Principal instance.

    Raises:
        ValidationError: If the id is empty, the secret is empty, the scheme
            is unsupported, or the id already exists.
    """
    if not principal_id:
        raise ValidationError("Principal id must not be empty.", code="empty_id")
    if not secret:
        raise ValidationError("Secret must not be empty.", code="empty_secret")
    hasher = SCHEME_HASHERS.get(scheme)
    if hasher is None:
        raise ValidationError(
            f"Unsupported authentication scheme '{scheme}'.",
            code="unsupported_scheme",
        )

    try:
        with transaction.atomic():
            principal = Principal.objects.create(
                id=principal_id,
                scheme=scheme,
                secret_data=hasher(secret),
            )
    except IntegrityError as exc:
        raise ValidationError(
            f"Principal '{principal_id}' already exists.",
            code="duplicate_principal",
        ) from exc

    logger.info("Principal created: id=%s scheme=%s", principal.pk, principal.scheme)
    return principal


def verify(principal_id, presented_secret):
    """Check a presented secret against the stored principal.

    Returns:
        True if the principal exists and the secret matches, else False.
        Unknown principals and unsupported schemes are treated as a
        mismatch.
    """
    principal = Principal.objects.filter(pk=principal_id).first()
    if principal is None:
        logger.debug("Unknown principal: id=%s", principal_id)
        return False

    verifier = SCHEME_VERIFIERS.get(principal.scheme)
    if verifier is None:
        logger.error(
            "No verifier for scheme: principal=%s scheme=%s",
            principal.pk,
            principal.scheme,
        )
        return False

    return verifier(principal, presented_secret)


def authorize(credentials):
    """Return the Principal behind ``credentials`` or raise Unauthorized."""
    if credentials is None or not verify(credentials.principal_id, credentials.secret):
        principal_id = credentials.principal_id if credentials else None
        logger.warning("Authorization failed: principal=%s", principal_id)
        raise Unauthorized("Invalid credentials.")
    return Principal.objects.get(pk=credentials.principal_id)


def parse_basic_authorization(header):
    """Decode an HTTP ``Authorization: Basic ...`` header value.

    Args:
        header: The raw header value, e.g. ``"Basic dXNlcjpwYXNz"``.

    Returns:
        A Credentials tuple.

    Raises:
        Unauthorized: If the header is missing or malformed.
    """
    if not header or not header.startswith("Basic "):
        raise Unauthorized("Missing basic authorization.")

    encoded = header[len("Basic "):].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise Unauthorized("Malformed basic authorization.") from exc

    principal_id, sep, secret = decoded.partition(":")
    if not sep:
        raise Unauthorized("Malformed basic authorization.")
    return Credentials(principal_id, secret)

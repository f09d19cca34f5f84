"""Token ledger: issuance, lookup, and the single-use transitions.

Every transition is a conditional UPDATE keyed on the current status, so a
caller that loses a race sees zero updated rows and fails cleanly instead
of overwriting someone else's transition.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from accounts.services.credentials import authorize
from common.clock import get_clock
from common.exceptions import InvalidState, NotFound, StorageFailure
from common.utils import generate_token_path
from uploads.models import Token

logger = logging.getLogger(__name__)

PATH_GENERATION_ATTEMPTS = 5


def _validate_token_request(token_ttl, max_size, content_expires_after_hours):
    if token_ttl <= timedelta(0):
        raise ValidationError(
            "Token validity must be positive.",
            code="invalid_token_ttl",
        )
    if max_size is not None and max_size <= 0:
        raise ValidationError(
            f"Maximum size must be positive, got {max_size}.",
            code="invalid_max_size",
        )
    if content_expires_after_hours is not None and content_expires_after_hours <= 0:
        raise ValidationError(
            "Content retention must be a positive number of hours, "
            f"got {content_expires_after_hours}.",
            code="invalid_content_ttl",
        )


def create_token(
    requester,
    token_ttl,
    max_size=None,
    content_expires_after_hours=None,
    clock=None,
):
    """Issue a FRESH token for a single upload.

    Args:
        requester: A ``Credentials`` tuple, verified against the credential
            store.
        token_ttl: ``timedelta`` during which an upload may run.
        max_size: Optional cap, in ``settings.VRAC_SIZE_UNIT_BYTES`` units.
        content_expires_after_hours: Optional retention applied once the
            upload completes. ``None`` keeps the content until purged.
        clock: Optional clock; defaults to ``settings.VRAC_CLOCK``.

    Returns:
        The created Token instance.

    Raises:
        Unauthorized: If the requester cannot be verified.
        ValidationError: If a duration or the size cap is not positive.
        StorageFailure: If no unique path could be stored.
    """
    principal = authorize(requester)
    _validate_token_request(token_ttl, max_size, content_expires_after_hours)

    now = get_clock(clock).now()
    nbytes = settings.VRAC_TOKEN_PATH_BYTES

    for _ in range(PATH_GENERATION_ATTEMPTS):  # retry on rare path collisions
        try:
            with transaction.atomic():
                token = Token.objects.create(
                    path=generate_token_path(nbytes),
                    status=Token.Status.FRESH,
                    max_size=max_size,
                    created_at=now,
                    token_expires_at=now + token_ttl,
                    content_expires_after_hours=content_expires_after_hours,
                )
        except IntegrityError:
            logger.warning("Token path collision, retrying: principal=%s", principal.pk)
            continue

        logger.info(
            "Token created: pk=%s principal=%s expires_at=%s max_size=%s",
            token.pk,
            principal.pk,
            token.token_expires_at.isoformat(),
            max_size,
        )
        return token

    raise StorageFailure("Failed to generate a unique token path.")


def resolve(path):
    """Look a token up by its public path.

    Does not check status or deadlines: the sweeper may lag real time, so
    callers about to act on the token must call ``ensure_usable`` too.

    Raises:
        NotFound: If no token has this path.
    """
    try:
        return Token.objects.get(path=path)
    except Token.DoesNotExist as exc:
        raise NotFound(f"No token at path {path!r}.") from exc


def is_usable(token, clock=None):
    """True when ``token`` is FRESH and its upload deadline has not passed."""
    now = get_clock(clock).now()
    return token.status == Token.Status.FRESH and now <= token.token_expires_at


def ensure_usable(token, clock=None):
    """Raise InvalidState unless an upload may run against ``token`` now."""
    if token.status != Token.Status.FRESH:
        raise InvalidState(
            f"Token {token.path!r} is {token.status}, expected {Token.Status.FRESH}."
        )
    if not is_usable(token, clock=clock):
        raise InvalidState(f"Token {token.path!r} expired at {token.token_expires_at}.")


def max_size_bytes(token):
    """The token's cap in bytes, or None when uncapped."""
    if token.max_size is None:
        return None
    return token.max_size * settings.VRAC_SIZE_UNIT_BYTES


def mark_used(token_id):
    """Transition a token from FRESH to USED.

    Raises:
        InvalidState: If the token is not FRESH (already used, expired, or
            lost a race).
    """
    updated = Token.objects.filter(
        pk=token_id,
        status=Token.Status.FRESH,
    ).update(status=Token.Status.USED)

    if updated == 0:
        raise InvalidState(f"Cannot mark token {token_id} as used: not fresh.")

    logger.info("Token used: pk=%s", token_id)


def mark_content_expiry(token_id, content_expires_at):
    """Set the content deadline of a token, once.

    Raises:
        InvalidState: If the deadline is already set.
    """
    updated = Token.objects.filter(
        pk=token_id,
        content_expires_at__isnull=True,
    ).update(content_expires_at=content_expires_at)

    if updated == 0:
        raise InvalidState(
            f"Cannot set content expiry of token {token_id}: already set."
        )

    logger.info(
        "Token content expiry set: pk=%s content_expires_at=%s",
        token_id,
        content_expires_at.isoformat(),
    )

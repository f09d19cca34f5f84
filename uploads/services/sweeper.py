"""Expiry sweeper: moves tokens across their time-based deadlines.

A pass carries no state of its own. For each token it first wins the
status change with a conditional UPDATE, then purges the bytes through the
blob store and stamps each file ``deleted_at`` once its bytes are gone. A
client that completes first makes the sweeper lose the UPDATE, and its
bytes are never touched. Files whose bytes could not be deleted stay
undeleted under an EXPIRED or DELETED token and are retried by the next
pass. Running the sweep twice, or twice at once, converges to the same
end state: blob deletion is idempotent.
"""

import logging

from django.db import transaction

from common.clock import get_clock
from common.exceptions import StorageFailure
from uploads.models import File, Token
from uploads.storage import get_blob_store

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000


def _live_files(token):
    return File.objects.filter(token=token, deleted_at__isnull=True)


def purge_file(upload, store, now):
    """Delete the bytes of ``upload``, then stamp it deleted.

    Raises:
        StorageFailure: If the bytes cannot be deleted. The row is left
            undeleted so a later pass retries it.
    """
    logger.info(
        "Purging blob: file=%s token=%s path=%s",
        upload.pk,
        upload.token_id,
        upload.path,
    )
    store.delete(upload.path)
    File.objects.filter(pk=upload.pk, deleted_at__isnull=True).update(
        deleted_at=now
    )


def _purge_token_files(token, store, now):
    """Purge every undeleted file of ``token``; return how many."""
    purged = 0
    for upload in list(_live_files(token)):
        purge_file(upload, store, now)
        purged += 1
    return purged


def _expire_token(token, now):
    """FRESH → EXPIRED. Returns True if this caller won the transition."""
    updated = Token.objects.filter(
        pk=token.pk,
        status=Token.Status.FRESH,
        token_expires_at__lt=now,
    ).update(status=Token.Status.EXPIRED)
    return bool(updated)


def _delete_token(token, from_status, now):
    """``from_status`` → DELETED. Returns True if this caller won the transition."""
    updated = Token.objects.filter(
        pk=token.pk,
        status=from_status,
    ).update(status=Token.Status.DELETED, deleted_at=now)
    return bool(updated)


def sweep(clock=None, blob_store=None, batch_size=None):
    """Run one sweep pass.

    1. FRESH tokens past ``token_expires_at`` become EXPIRED; an abandoned
       STARTED file is purged.
    2. USED tokens past a set ``content_expires_at`` become DELETED; their
       file is purged.
    3. USED tokens without ``content_expires_at`` are kept.
    4. Undeleted files left under EXPIRED or DELETED tokens (failed
       deletes, bytes that landed after an earlier pass) are purged.

    A StorageFailure on one token is logged and its files are left for
    the next pass.

    Args:
        clock: Optional clock; defaults to ``settings.VRAC_CLOCK``.
        blob_store: Optional blob store; defaults to ``settings.VRAC_BLOB_STORE``.
        batch_size: Maximum tokens handled per step. Defaults to BATCH_SIZE.

    Returns:
        dict: {"expired": int, "deleted": int, "purged": int, "failed": int}
    """
    now = get_clock(clock).now()
    store = get_blob_store(blob_store)
    batch_size = batch_size or BATCH_SIZE
    result = {"expired": 0, "deleted": 0, "purged": 0, "failed": 0}
    skipped = set()

    stale_fresh = Token.objects.filter(
        status=Token.Status.FRESH,
        token_expires_at__lt=now,
    ).order_by("pk")[:batch_size]
    for token in stale_fresh:
        if not _expire_token(token, now):
            continue
        result["expired"] += 1
        try:
            purged = _purge_token_files(token, store, now)
        except StorageFailure as exc:
            logger.error(
                "Sweep could not purge expired token: token=%s error=%s",
                token.pk,
                exc.message,
            )
            result["failed"] += 1
            skipped.add(token.pk)
            continue
        result["purged"] += purged
        logger.info("Token expired: pk=%s orphan_files=%d", token.pk, purged)

    lapsed_content = Token.objects.filter(
        status=Token.Status.USED,
        content_expires_at__isnull=False,
        content_expires_at__lt=now,
    ).order_by("pk")[:batch_size]
    for token in lapsed_content:
        if not _delete_token(token, Token.Status.USED, now):
            continue
        result["deleted"] += 1
        try:
            purged = _purge_token_files(token, store, now)
        except StorageFailure as exc:
            logger.error(
                "Sweep could not purge lapsed content: token=%s error=%s",
                token.pk,
                exc.message,
            )
            result["failed"] += 1
            skipped.add(token.pk)
            continue
        result["purged"] += purged
        logger.info("Token deleted: pk=%s files=%d", token.pk, purged)

    strays = (
        File.objects.filter(
            deleted_at__isnull=True,
            token__status__in=[Token.Status.EXPIRED, Token.Status.DELETED],
        )
        .exclude(token_id__in=skipped)
        .order_by("pk")[:batch_size]
    )
    for upload in strays:
        try:
            purge_file(upload, store, now)
        except StorageFailure as exc:
            logger.error(
                "Sweep could not purge stray file: file=%s error=%s",
                upload.pk,
                exc.message,
            )
            result["failed"] += 1
            continue
        result["purged"] += 1

    logger.info(
        "Sweep done: %d expired, %d deleted, %d blobs purged, %d failed.",
        result["expired"],
        result["deleted"],
        result["purged"],
        result["failed"],
    )
    return result


def purge_token(token, clock=None, blob_store=None):
    """Force a token to DELETED and destroy its bytes, whatever its deadlines.

    FRESH tokens go through EXPIRED first so that only the regular
    transitions are ever taken. The status changes commit before any
    bytes are touched; purging a DELETED token only retries bytes an
    earlier purge could not delete.

    Returns:
        The refreshed Token instance.

    Raises:
        StorageFailure: If the bytes cannot be deleted. The token stays
            DELETED and the sweeper retries the bytes.
    """
    now = get_clock(clock).now()
    store = get_blob_store(blob_store)

    with transaction.atomic():
        Token.objects.filter(
            pk=token.pk,
            status=Token.Status.FRESH,
        ).update(status=Token.Status.EXPIRED)
        token.refresh_from_db()
        if token.status in (Token.Status.USED, Token.Status.EXPIRED):
            _delete_token(token, token.status, now)

    purged = _purge_token_files(token, store, now)

    token.refresh_from_db()
    logger.info(
        "Token purged: pk=%s status=%s files=%d",
        token.pk,
        token.status,
        purged,
    )
    return token


def pending_counts(clock=None):
    """Count what the next sweep pass would touch, without changing anything.

    Returns:
        dict: {"expirable": int, "deletable": int}
    """
    now = get_clock(clock).now()
    return {
        "expirable": Token.objects.filter(
            status=Token.Status.FRESH,
            token_expires_at__lt=now,
        ).count(),
        "deletable": Token.objects.filter(
            status=Token.Status.USED,
            content_expires_at__isnull=False,
            content_expires_at__lt=now,
        ).count(),
    }

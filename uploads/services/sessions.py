"""Upload session services: one streamed file per token.

A session is the File row of a token while it is STARTED. Bytes are pushed
to the blob store chunk by chunk; completion flips the file to COMPLETED
and consumes the token in a single transaction. A failed or oversized
upload aborts the session and leaves the token FRESH, so the client can
retry against the same token.
"""

import logging
from datetime import timedelta

from django.db import IntegrityError, transaction

from common.clock import get_clock
from common.exceptions import (
    Conflict,
    InvalidState,
    NotFound,
    SizeExceeded,
    StorageFailure,
)
from common.utils import generate_storage_name
from uploads.models import File, Token
from uploads.services.sweeper import purge_file
from uploads.services.tokens import (
    ensure_usable,
    mark_content_expiry,
    mark_used,
    max_size_bytes,
)
from uploads.storage import get_blob_store

logger = logging.getLogger(__name__)

SWEPT_STATUSES = (Token.Status.EXPIRED, Token.Status.DELETED)


def begin_upload(token, clock=None, blob_store=None):
    """Open the upload session of a token.

    Args:
        token: A Token instance.
        clock: Optional clock; defaults to ``settings.VRAC_CLOCK``.
        blob_store: Optional blob store; defaults to ``settings.VRAC_BLOB_STORE``.

    Returns:
        A File instance with status STARTED and size 0.

    Raises:
        InvalidState: If the token is not FRESH or its deadline passed.
        Conflict: If the token already has a file.
        StorageFailure: If the blob path cannot be reserved.
    """
    clock = get_clock(clock)
    store = get_blob_store(blob_store)

    token.refresh_from_db()
    ensure_usable(token, clock=clock)

    if File.objects.filter(token=token).exists():
        raise Conflict(f"Token {token.path!r} already has an upload.")

    try:
        with transaction.atomic():
            upload = File.objects.create(
                token=token,
                path=generate_storage_name(str(token.pk)),
                size=0,
                file_upload_status=File.UploadStatus.STARTED,
                created_at=clock.now(),
            )
    except IntegrityError as exc:
        raise Conflict(f"Token {token.path!r} already has an upload.") from exc

    try:
        store.reserve(upload.path)
    except StorageFailure:
        upload.delete()
        raise

    logger.info(
        "Upload started: file=%s token=%s path=%s",
        upload.pk,
        token.pk,
        upload.path,
    )
    return upload


def abort_upload(upload, blob_store=None):
    """Throw an unfinished upload away: purge its bytes, delete its row.

    The owning token is left untouched. If the bytes cannot be purged the
    row is kept so the sweeper finds it once the token expires.

    Raises:
        StorageFailure: If the blob store cannot delete the bytes.
    """
    store = get_blob_store(blob_store)
    store.delete(upload.path)
    File.objects.filter(
        pk=upload.pk,
        file_upload_status=File.UploadStatus.STARTED,
    ).delete()
    logger.info("Upload aborted: file=%s token=%s", upload.pk, upload.token_id)


def _discard_if_swept(upload, store, now):
    """Purge bytes that reached the store after the sweeper claimed the token.

    The row is first marked undeleted so that a failed delete is retried
    by the next sweep pass.

    Returns:
        True if the token was EXPIRED or DELETED and the bytes were purged.
    """
    status = (
        Token.objects.filter(pk=upload.token_id)
        .values_list("status", flat=True)
        .first()
    )
    if status not in SWEPT_STATUSES:
        return False

    logger.warning(
        "Upload outran the sweeper: file=%s token=%s status=%s",
        upload.pk,
        upload.token_id,
        status,
    )
    File.objects.filter(pk=upload.pk).update(deleted_at=None)
    purge_file(upload, store, now)
    return True


def write_chunk(upload, data, clock=None, blob_store=None):
    """Append a chunk to an upload in progress.

    The size is claimed with a conditional UPDATE on the previous size
    before the bytes are written, so two writers on the same file cannot
    both succeed.

    Args:
        upload: A File instance with status STARTED.
        data: The chunk bytes.

    Returns:
        The cumulative size in bytes.

    Raises:
        InvalidState: If the file is not STARTED or the token is no
            longer usable. Also raised when the sweeper expired the token
            while the chunk was being written; the bytes are purged.
        SizeExceeded: If the chunk would push the file over the token's
            cap. The session is aborted; the token stays FRESH.
        Conflict: If another writer moved the size concurrently.
        StorageFailure: If the bytes cannot be written. The session is
            aborted.
    """
    clock = get_clock(clock)
    store = get_blob_store(blob_store)

    try:
        upload.refresh_from_db()
    except File.DoesNotExist as exc:
        raise InvalidState(f"Upload {upload.pk} was aborted.") from exc
    if upload.file_upload_status != File.UploadStatus.STARTED or upload.is_deleted:
        raise InvalidState(
            f"Cannot write to file {upload.pk}: status is "
            f"'{upload.file_upload_status}', expected 'STARTED'."
        )

    token = Token.objects.get(pk=upload.token_id)
    ensure_usable(token, clock=clock)

    previous_size = upload.size
    new_size = previous_size + len(data)
    cap = max_size_bytes(token)
    if cap is not None and new_size > cap:
        logger.warning(
            "Upload over size cap: file=%s token=%s size=%d cap=%d",
            upload.pk,
            token.pk,
            new_size,
            cap,
        )
        abort_upload(upload, blob_store=store)
        raise SizeExceeded(
            f"Upload of {new_size} bytes exceeds the maximum of {cap} bytes."
        )

    updated = File.objects.filter(
        pk=upload.pk,
        file_upload_status=File.UploadStatus.STARTED,
        size=previous_size,
    ).update(size=new_size)
    if updated == 0:
        raise Conflict(f"File {upload.pk} was written concurrently.")

    try:
        store.append(upload.path, data)
    except StorageFailure:
        logger.error("Upload write failed: file=%s token=%s", upload.pk, token.pk)
        abort_upload(upload, blob_store=store)
        raise

    if _discard_if_swept(upload, store, clock.now()):
        raise InvalidState(f"Token of file {upload.pk} expired during the write.")

    upload.size = new_size
    logger.debug("Upload chunk written: file=%s size=%d", upload.pk, new_size)
    return new_size


def complete_upload(upload, name, content_type, clock=None, blob_store=None):
    """Finish an upload and consume its token.

    The file flip (STARTED → COMPLETED), ``mark_used`` and
    ``mark_content_expiry`` commit together or not at all. Only the
    in-memory token is consulted before the conditional updates, so of two
    racing completions the loser always gets Conflict.

    Args:
        upload: A File instance with status STARTED.
        name: Original file name supplied by the client.
        content_type: MIME type supplied by the client.

    Returns:
        The updated File instance (status COMPLETED).

    Raises:
        InvalidState: If the file is not STARTED or the token is not usable.
        SizeExceeded: If the stored bytes exceed the cap.
        Conflict: If any conditional update lost a race. Nothing is
            committed; the file stays STARTED. If the sweeper claimed the
            token meanwhile, the bytes are purged here.
    """
    clock = get_clock(clock)
    store = get_blob_store(blob_store)

    if upload.file_upload_status != File.UploadStatus.STARTED:
        raise InvalidState(
            f"Cannot complete file {upload.pk}: status is "
            f"'{upload.file_upload_status}', expected 'STARTED'."
        )

    token = upload.token
    ensure_usable(token, clock=clock)
    now = clock.now()

    final_size = store.finalize(store.open_write(upload.path))
    cap = max_size_bytes(token)
    if cap is not None and final_size > cap:
        abort_upload(upload, blob_store=store)
        raise SizeExceeded(
            f"Upload of {final_size} bytes exceeds the maximum of {cap} bytes."
        )

    content_expires_at = None
    if token.content_expires_after_hours is not None:
        content_expires_at = now + timedelta(hours=token.content_expires_after_hours)

    try:
        with transaction.atomic():
            updated = File.objects.filter(
                pk=upload.pk,
                file_upload_status=File.UploadStatus.STARTED,
                deleted_at__isnull=True,
            ).update(
                file_upload_status=File.UploadStatus.COMPLETED,
                name=name or "",
                content_type=content_type or "",
                size=final_size,
            )
            if updated == 0:
                raise Conflict(f"File {upload.pk} is no longer being uploaded.")

            mark_used(token.pk)
            if content_expires_at is not None:
                mark_content_expiry(token.pk, content_expires_at)
    except (Conflict, InvalidState) as exc:
        logger.warning(
            "Upload completion lost a race: file=%s token=%s error=%s",
            upload.pk,
            token.pk,
            exc.message,
        )
        _discard_if_swept(upload, store, now)
        raise Conflict(f"Cannot complete file {upload.pk}: {exc.message}") from exc

    upload.refresh_from_db()
    token.refresh_from_db()
    logger.info(
        "Upload completed: file=%s token=%s name=%s size=%d content_expires_at=%s",
        upload.pk,
        token.pk,
        upload.name,
        upload.size,
        content_expires_at.isoformat() if content_expires_at else None,
    )
    return upload


def upload_stream(token, chunks, name, content_type, clock=None, blob_store=None):
    """Run a whole upload: begin, write every chunk, complete.

    If ``chunks`` stops with an error (client disconnect) the file stays
    STARTED and the sweeper purges it once the token expires.

    Returns:
        The COMPLETED File instance.
    """
    clock = get_clock(clock)
    store = get_blob_store(blob_store)

    upload = begin_upload(token, clock=clock, blob_store=store)
    for chunk in chunks:
        write_chunk(upload, chunk, clock=clock, blob_store=store)
    return complete_upload(upload, name, content_type, clock=clock, blob_store=store)


def get_downloadable_file(token, clock=None):
    """Return the completed file of a used token whose content is still kept.

    Raises:
        NotFound: If the token is not USED, its content window has closed,
            or the bytes were purged.
    """
    now = get_clock(clock).now()
    if token.status != Token.Status.USED:
        raise NotFound(f"Token {token.path!r} has no file to serve.")
    if token.content_expires_at is not None and now > token.content_expires_at:
        raise NotFound(f"Content of token {token.path!r} has expired.")

    upload = File.objects.filter(
        token=token,
        file_upload_status=File.UploadStatus.COMPLETED,
        deleted_at__isnull=True,
    ).first()
    if upload is None:
        raise NotFound(f"Token {token.path!r} has no file to serve.")
    return upload

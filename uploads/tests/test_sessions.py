"""Unit tests for upload session services."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from common.exceptions import (
    Conflict,
    InvalidState,
    NotFound,
    SizeExceeded,
    StorageFailure,
)
from uploads.models import File, Token
from uploads.services.sessions import (
    abort_upload,
    begin_upload,
    complete_upload,
    get_downloadable_file,
    upload_stream,
    write_chunk,
)


def _read(blob_store, path):
    with blob_store.open_read(path) as fh:
        return fh.read()


@pytest.mark.django_db
class TestBeginUpload:
    """Tests for begin_upload service."""

    def test_starts_empty_file(self, make_token, clock, blob_store):
        token = make_token()
        upload = begin_upload(token, clock=clock, blob_store=blob_store)
        assert upload.file_upload_status == File.UploadStatus.STARTED
        assert upload.size == 0
        assert upload.path.startswith(f"{token.pk}/")
        assert _read(blob_store, upload.path) == b""

    def test_second_begin_conflicts(self, make_token, clock, blob_store):
        """A token carries at most one file."""
        token = make_token()
        begin_upload(token, clock=clock, blob_store=blob_store)
        with pytest.raises(Conflict):
            begin_upload(token, clock=clock, blob_store=blob_store)
        assert File.objects.filter(token=token).count() == 1

    def test_expired_deadline(self, make_token, clock, blob_store):
        token = make_token(token_ttl=timedelta(seconds=1))
        clock.advance(seconds=2)
        with pytest.raises(InvalidState):
            begin_upload(token, clock=clock, blob_store=blob_store)
        assert not File.objects.exists()

    def test_used_token(self, make_token, clock, blob_store):
        token = make_token()
        upload_stream(token, [b"x"], "a.txt", "text/plain", clock, blob_store)
        with pytest.raises(InvalidState):
            begin_upload(token, clock=clock, blob_store=blob_store)

    def test_reserve_failure_leaves_no_row(self, make_token, clock):
        store = MagicMock()
        store.reserve.side_effect = StorageFailure("disk full")
        token = make_token()
        with pytest.raises(StorageFailure):
            begin_upload(token, clock=clock, blob_store=store)
        assert not File.objects.exists()


@pytest.mark.django_db
class TestWriteChunk:
    """Tests for write_chunk service."""

    def test_appends_and_counts(self, make_token, clock, blob_store):
        upload = begin_upload(make_token(), clock=clock, blob_store=blob_store)
        assert write_chunk(upload, b"hello ", clock, blob_store) == 6
        assert write_chunk(upload, b"world", clock, blob_store) == 11
        upload.refresh_from_db()
        assert upload.size == 11
        assert _read(blob_store, upload.path) == b"hello world"

    def test_write_up_to_cap_accepted(self, make_token, clock, blob_store):
        """A file of exactly max_size bytes is within the cap."""
        upload = begin_upload(make_token(max_size=10), clock=clock, blob_store=blob_store)
        assert write_chunk(upload, b"0123456789", clock, blob_store) == 10

    def test_over_cap_aborts_and_keeps_token(self, make_token, clock, blob_store):
        """Exceeding the cap discards the bytes; the token can be retried."""
        token = make_token(max_size=10)
        upload = begin_upload(token, clock=clock, blob_store=blob_store)
        write_chunk(upload, b"12345", clock, blob_store)

        with pytest.raises(SizeExceeded):
            write_chunk(upload, b"678901", clock, blob_store)

        token.refresh_from_db()
        assert token.status == Token.Status.FRESH
        assert not File.objects.filter(token=token).exists()
        assert not (blob_store.storage.exists(upload.path))

        retry = begin_upload(token, clock=clock, blob_store=blob_store)
        write_chunk(retry, b"123", clock, blob_store)
        complete_upload(retry, "a.bin", "application/octet-stream", clock, blob_store)
        token.refresh_from_db()
        assert token.status == Token.Status.USED

    def test_write_after_abort(self, make_token, clock, blob_store):
        upload = begin_upload(make_token(), clock=clock, blob_store=blob_store)
        abort_upload(upload, blob_store=blob_store)
        with pytest.raises(InvalidState):
            write_chunk(upload, b"x", clock, blob_store)

    def test_write_after_deadline(self, make_token, clock, blob_store):
        upload = begin_upload(
            make_token(token_ttl=timedelta(seconds=5)),
            clock=clock,
            blob_store=blob_store,
        )
        clock.advance(seconds=6)
        with pytest.raises(InvalidState):
            write_chunk(upload, b"x", clock, blob_store)

    def test_write_to_completed_file(self, make_token, clock, blob_store):
        upload = upload_stream(make_token(), [b"x"], "a", "", clock, blob_store)
        with pytest.raises(InvalidState):
            write_chunk(upload, b"y", clock, blob_store)

    def test_storage_failure_aborts(self, make_token, clock, blob_store):
        token = make_token()
        upload = begin_upload(token, clock=clock, blob_store=blob_store)
        store = MagicMock()
        store.append.side_effect = StorageFailure("io error")

        with pytest.raises(StorageFailure):
            write_chunk(upload, b"x", clock, store)

        store.delete.assert_called_once_with(upload.path)
        assert not File.objects.filter(token=token).exists()
        token.refresh_from_db()
        assert token.status == Token.Status.FRESH


@pytest.mark.django_db
class TestCompleteUpload:
    """Tests for complete_upload service."""

    def test_consumes_token(self, make_token, clock, blob_store):
        token = make_token()
        upload = begin_upload(token, clock=clock, blob_store=blob_store)
        write_chunk(upload, b"data", clock, blob_store)

        done = complete_upload(upload, "report.pdf", "application/pdf", clock, blob_store)

        assert done.file_upload_status == File.UploadStatus.COMPLETED
        assert done.name == "report.pdf"
        assert done.content_type == "application/pdf"
        assert done.size == 4
        token.refresh_from_db()
        assert token.status == Token.Status.USED
        assert token.content_expires_at is None

    def test_sets_content_expiry(self, make_token, clock, blob_store):
        token = make_token(content_expires_after_hours=3)
        clock.advance(minutes=10)
        upload_stream(token, [b"abc"], "a", "", clock, blob_store)
        token.refresh_from_db()
        assert token.content_expires_at == clock.now() + timedelta(hours=3)

    def test_concurrent_completions(self, make_token, clock, blob_store):
        """Of two completions racing on one token, exactly one wins."""
        token = make_token()
        begin_upload(token, clock=clock, blob_store=blob_store)
        first = File.objects.select_related("token").get(token=token)
        second = File.objects.select_related("token").get(token=token)

        complete_upload(first, "a", "", clock, blob_store)
        with pytest.raises(Conflict):
            complete_upload(second, "b", "", clock, blob_store)

        first.refresh_from_db()
        assert first.name == "a"
        token.refresh_from_db()
        assert token.status == Token.Status.USED

    def test_lost_token_race_rolls_back(self, make_token, clock, blob_store):
        """If the token was consumed elsewhere, the file stays STARTED."""
        token = make_token()
        upload = begin_upload(token, clock=clock, blob_store=blob_store)
        Token.objects.filter(pk=token.pk).update(status=Token.Status.USED)

        with pytest.raises(Conflict):
            complete_upload(upload, "a", "", clock, blob_store)

        upload.refresh_from_db()
        assert upload.file_upload_status == File.UploadStatus.STARTED

    def test_complete_after_deadline(self, make_token, clock, blob_store):
        upload = begin_upload(
            make_token(token_ttl=timedelta(seconds=5)),
            clock=clock,
            blob_store=blob_store,
        )
        clock.advance(seconds=6)
        with pytest.raises(InvalidState):
            complete_upload(upload, "a", "", clock, blob_store)

    def test_bytes_over_cap_at_completion(self, make_token, clock, blob_store):
        """Bytes that reached the store behind our back still count."""
        token = make_token(max_size=2)
        upload = begin_upload(token, clock=clock, blob_store=blob_store)
        blob_store.append(upload.path, b"too long")

        with pytest.raises(SizeExceeded):
            complete_upload(upload, "a", "", clock, blob_store)
        token.refresh_from_db()
        assert token.status == Token.Status.FRESH
        assert not File.objects.filter(token=token).exists()


@pytest.mark.django_db
class TestGetDownloadableFile:
    """Tests for get_downloadable_file."""

    def test_returns_completed_file(self, make_token, clock, blob_store):
        token = make_token(content_expires_after_hours=1)
        upload = upload_stream(token, [b"abc"], "a", "", clock, blob_store)
        token.refresh_from_db()
        assert get_downloadable_file(token, clock=clock) == upload

    def test_fresh_token_has_nothing(self, make_token, clock):
        with pytest.raises(NotFound):
            get_downloadable_file(make_token(), clock=clock)

    def test_lapsed_content(self, make_token, clock, blob_store):
        """Content past its deadline is hidden even before the sweeper runs."""
        token = make_token(content_expires_after_hours=1)
        upload_stream(token, [b"abc"], "a", "", clock, blob_store)
        token.refresh_from_db()
        clock.advance(hours=2)
        with pytest.raises(NotFound):
            get_downloadable_file(token, clock=clock)

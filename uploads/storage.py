"""Blob store: durable bytes addressed by path.

The upload services only ever reserve a path, append bytes to it, finalize
it, and delete it. ``FileSystemBlobStore`` keeps blobs under
``settings.VRAC_ROOT_PATH``; any other backend can be plugged in through
``settings.VRAC_BLOB_STORE``.
"""

import contextlib
import logging
import os

from django.conf import settings
from django.core.exceptions import SuspiciousFileOperation
from django.core.files.storage import FileSystemStorage
from django.utils.module_loading import import_string

from common.exceptions import StorageFailure

logger = logging.getLogger(__name__)


class WriteHandle:
    """An open, append-only writer on a single blob path."""

    def __init__(self, path, fh):
        self.path = path
        self.fh = fh
        self.written = 0

    def __repr__(self):
        return f"<WriteHandle path={self.path!r} written={self.written}>"


class BlobStore:
    """Interface every blob store backend implements."""

    def open_write(self, path):
        """Open ``path`` for appending, creating it if missing."""
        raise NotImplementedError

    def write(self, handle, data):
        """Append ``data``; return the number of bytes written."""
        raise NotImplementedError

    def finalize(self, handle):
        """Flush and close ``handle``; return the blob's total size."""
        raise NotImplementedError

    def delete(self, path):
        """Remove ``path``. Deleting a missing path is not an error."""
        raise NotImplementedError

    def open_read(self, path):
        """Return a binary file object on ``path``."""
        raise NotImplementedError

    def reserve(self, path):
        """Create an empty blob at ``path`` so the address is taken."""
        self.finalize(self.open_write(path))

    def append(self, path, data):
        """Open, write, and finalize in one go; return the blob's size."""
        handle = self.open_write(path)
        try:
            self.write(handle, data)
        except StorageFailure:
            with contextlib.suppress(StorageFailure):
                self.finalize(handle)
            raise
        return self.finalize(handle)


class FileSystemBlobStore(BlobStore):
    """Blob store on the local filesystem below a root directory."""

    def __init__(self, root_path=None):
        self.root_path = str(root_path or settings.VRAC_ROOT_PATH)
        self.storage = FileSystemStorage(location=self.root_path)

    def _full_path(self, path):
        try:
            return self.storage.path(path)
        except SuspiciousFileOperation as exc:
            raise StorageFailure(
                f"Blob path {path!r} escapes the storage root."
            ) from exc

    def open_write(self, path):
        full_path = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            fh = open(full_path, "ab")
        except OSError as exc:
            raise StorageFailure(f"Cannot open blob {path!r} for write: {exc}") from exc
        return WriteHandle(path, fh)

    def write(self, handle, data):
        try:
            handle.fh.write(data)
        except OSError as exc:
            raise StorageFailure(
                f"Error writing to blob {handle.path!r}: {exc}"
            ) from exc
        handle.written += len(data)
        return len(data)

    def finalize(self, handle):
        try:
            handle.fh.flush()
            handle.fh.close()
            return self.storage.size(handle.path)
        except OSError as exc:
            raise StorageFailure(
                f"Cannot finalize blob {handle.path!r}: {exc}"
            ) from exc

    def delete(self, path):
        full_path = self._full_path(path)
        try:
            self.storage.delete(path)
        except OSError as exc:
            raise StorageFailure(f"Cannot delete blob {path!r}: {exc}") from exc

        # The per-token directory goes away with its last blob; it may
        # still hold a newer attempt, or be gone already.
        parent = os.path.dirname(full_path)
        if parent != self.storage.location:
            with contextlib.suppress(OSError):
                os.rmdir(parent)
        logger.debug("Blob deleted: path=%s", path)

    def open_read(self, path):
        try:
            return self.storage.open(path, "rb")
        except FileNotFoundError as exc:
            raise StorageFailure(f"Blob {path!r} is missing.") from exc
        except OSError as exc:
            raise StorageFailure(f"Cannot read blob {path!r}: {exc}") from exc


def get_blob_store(blob_store=None):
    """Return ``blob_store`` if given, else the configured backend."""
    if blob_store is not None:
        return blob_store
    store_path = settings.VRAC_BLOB_STORE
    return import_string(store_path)()

"""Shared pytest fixtures for vrac."""

from datetime import timedelta

import pytest

from common.clock import FrozenClock


@pytest.fixture(autouse=True)
def _vrac_settings(settings, tmp_path):
    """Keep blobs under a temporary root and count sizes in bytes."""
    settings.VRAC_ROOT_PATH = tmp_path
    settings.VRAC_SIZE_UNIT_BYTES = 1
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]


@pytest.fixture
def principal(db):
    """Create a test principal."""
    from accounts.services.credentials import create_principal

    return create_principal("admin", "s3cret")


@pytest.fixture
def credentials(principal):
    """Valid credentials for the test principal."""
    from accounts.services.credentials import Credentials

    return Credentials("admin", "s3cret")


@pytest.fixture
def clock():
    """A clock that only moves when the test advances it."""
    return FrozenClock()


@pytest.fixture
def blob_store(tmp_path):
    """Filesystem blob store rooted in the test's temporary directory."""
    from uploads.storage import FileSystemBlobStore

    return FileSystemBlobStore(tmp_path)


@pytest.fixture
def make_token(credentials, clock):
    """Factory fixture to issue tokens against the frozen clock."""
    from uploads.services.tokens import create_token

    def _make(token_ttl=None, max_size=None, content_expires_after_hours=None):
        return create_token(
            credentials,
            token_ttl or timedelta(hours=1),
            max_size=max_size,
            content_expires_after_hours=content_expires_after_hours,
            clock=clock,
        )

    return _make

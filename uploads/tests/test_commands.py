"""Tests for the uploads management commands."""

import json
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from uploads.models import Token


@pytest.mark.django_db
class TestIssueTokenCommand:
    """Tests for issue_token."""

    def test_issues_token(self, principal):
        out = StringIO()
        call_command(
            "issue_token",
            "-u", "admin",
            "-p", "s3cret",
            "--valid-for-hours", "2",
            "--max-size", "5",
            "--content-expires-hours", "24",
            "--json",
            stdout=out,
        )
        data = json.loads(out.getvalue())
        token = Token.objects.get(path=data["path"])
        assert token.status == Token.Status.FRESH
        assert token.max_size == 5
        assert token.content_expires_after_hours == 24

    def test_bad_password(self, principal):
        with pytest.raises(CommandError, match="unauthorized"):
            call_command(
                "issue_token", "-u", "admin", "-p", "nope", "--valid-for-hours", "1"
            )

    def test_invalid_validity(self, principal):
        with pytest.raises(CommandError, match="positive"):
            call_command(
                "issue_token", "-u", "admin", "-p", "s3cret", "--valid-for-hours", "0"
            )


@pytest.mark.django_db
class TestSweepUploadsCommand:
    """Tests for sweep_uploads."""

    def test_dry_run_changes_nothing(self, make_token, clock):
        clock.advance(hours=-2)
        token = make_token(token_ttl=timedelta(hours=1))
        out = StringIO()

        call_command("sweep_uploads", "--dry-run", "--json", stdout=out)

        assert json.loads(out.getvalue()) == {"expirable": 1, "deletable": 0}
        token.refresh_from_db()
        assert token.status == Token.Status.FRESH

    def test_sweeps(self, make_token, clock):
        clock.advance(hours=-2)
        token = make_token(token_ttl=timedelta(hours=1))
        out = StringIO()

        call_command("sweep_uploads", stdout=out)

        assert "Expired 1" in out.getvalue()
        token.refresh_from_db()
        assert token.status == Token.Status.EXPIRED


@pytest.mark.django_db
class TestPurgeTokenCommand:
    """Tests for purge_token."""

    def test_purges(self, make_token):
        token = make_token()
        out = StringIO()

        call_command("purge_token", "-t", token.path, "--json", stdout=out)

        assert json.loads(out.getvalue())["status"] == Token.Status.DELETED
        token.refresh_from_db()
        assert token.status == Token.Status.DELETED

    def test_unknown_token(self, db):
        with pytest.raises(CommandError, match="not_found"):
            call_command("purge_token", "-t", "missing")

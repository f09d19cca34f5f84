"""
Shared base command class for vrac management commands.

Provides common argument patterns (--dry-run, --json), helper methods,
and translation of domain errors into CommandError.
"""

import json
import time

from django.core.management.base import BaseCommand, CommandError

from common.exceptions import VracError


class VracBaseCommand(BaseCommand):
    """
    Base command with common patterns for vrac commands.

    Subclasses can set class attributes to opt-in to common arguments:
        supports_dry_run = True: adds --dry-run flag
        supports_json = True: adds --json flag

    Subclasses implement ``run(**options)`` instead of ``handle``.
    """

    supports_dry_run = False
    supports_json = False

    def add_arguments(self, parser):
        if self.supports_dry_run:
            parser.add_argument(
                "--dry-run",
                action="store_true",
                help="Show what would happen without making changes",
            )
        if self.supports_json:
            parser.add_argument(
                "--json",
                action="store_true",
                dest="json_output",
                help="Output results as JSON",
            )

    def handle(self, *args, **options):
        self.start_timer()
        try:
            return self.run(**options)
        except VracError as exc:
            raise CommandError(f"{exc.code}: {exc.message}") from exc

    def run(self, **options):
        raise NotImplementedError("subclasses of VracBaseCommand must provide a run() method")

    def output_json(self, data):
        """Write data as formatted JSON to stdout."""
        self.stdout.write(json.dumps(data, indent=2, default=str))

    def start_timer(self):
        """Start the execution timer."""
        self._start_time = time.time()

    def elapsed(self):
        """Return elapsed time since start_timer() in seconds."""
        return time.time() - getattr(self, "_start_time", time.time())

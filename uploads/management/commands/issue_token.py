"""Issue an upload token on behalf of a principal."""

from datetime import timedelta

from django.core.exceptions import ValidationError
from django.core.management.base import CommandError

from accounts.services.credentials import Credentials
from common.management.base import VracBaseCommand
from uploads.services.tokens import create_token


class Command(VracBaseCommand):
    help = "Create a FRESH token for a single upload."

    supports_json = True

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("-u", "--username", required=True)
        parser.add_argument("-p", "--password", required=True)
        parser.add_argument(
            "--valid-for-hours",
            type=int,
            required=True,
            help="Hours during which the upload may happen",
        )
        parser.add_argument(
            "--max-size",
            type=int,
            default=None,
            help="Upload cap in VRAC_SIZE_UNIT_BYTES units",
        )
        parser.add_argument(
            "--content-expires-hours",
            type=int,
            default=None,
            help="Hours the upload is kept once complete; omit to keep it until purged",
        )

    def run(self, **options):
        try:
            token = create_token(
                Credentials(options["username"], options["password"]),
                timedelta(hours=options["valid_for_hours"]),
                max_size=options["max_size"],
                content_expires_after_hours=options["content_expires_hours"],
            )
        except ValidationError as exc:
            raise CommandError("; ".join(exc.messages)) from exc

        if options["json_output"]:
            self.output_json(
                {
                    "path": token.path,
                    "status": token.status,
                    "token_expires_at": token.token_expires_at,
                    "max_size": token.max_size,
                    "content_expires_after_hours": token.content_expires_after_hours,
                }
            )
            return
        self.stdout.write(self.style.SUCCESS(f"Token created: {token.path}"))

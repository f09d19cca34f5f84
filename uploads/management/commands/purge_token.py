"""Delete a token and its file regardless of deadlines."""

from common.management.base import VracBaseCommand
from uploads.services.sweeper import purge_token
from uploads.services.tokens import resolve


class Command(VracBaseCommand):
    help = "Force a token to DELETED and remove its uploaded bytes."

    supports_json = True

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("-t", "--token", required=True, help="Public token path")

    def run(self, **options):
        token = purge_token(resolve(options["token"]))
        if options["json_output"]:
            self.output_json(
                {"path": token.path, "status": token.status, "deleted_at": token.deleted_at}
            )
            return
        self.stdout.write(self.style.SUCCESS(f"Token {token.path} is {token.status}."))

"""Create an administrative principal with a hashed password."""

from django.core.exceptions import ValidationError
from django.core.management.base import CommandError

from accounts.services.credentials import create_principal
from common.management.base import VracBaseCommand


class Command(VracBaseCommand):
    help = "Create a principal allowed to issue tokens."

    def add_arguments(self, parser):
        super().add_arguments(parser)
        parser.add_argument("-u", "--username", required=True)
        parser.add_argument("-p", "--password", required=True)

    def run(self, **options):
        try:
            principal = create_principal(options["username"], options["password"])
        except ValidationError as exc:
            raise CommandError("; ".join(exc.messages)) from exc
        self.stdout.write(self.style.SUCCESS(f"Created principal {principal.pk}"))

"""Force an expiry sweep of tokens and their files."""

from common.management.base import VracBaseCommand
from uploads.services.sweeper import pending_counts, sweep


class Command(VracBaseCommand):
    help = "Expire stale tokens and purge content past its retention."

    supports_dry_run = True
    supports_json = True

    def run(self, **options):
        if options["dry_run"]:
            result = pending_counts()
            if options["json_output"]:
                self.output_json(result)
            else:
                self.stdout.write(
                    f"Would expire {result['expirable']} token(s) and delete "
                    f"{result['deletable']} token(s)."
                )
            return

        result = sweep()
        if options["json_output"]:
            self.output_json({**result, "elapsed": round(self.elapsed(), 3)})
            return

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {result['expired']}, deleted {result['deleted']}, "
                f"purged {result['purged']} blob(s) in {self.elapsed():.2f}s."
            )
        )
        if result["failed"]:
            self.stderr.write(
                self.style.WARNING(
                    f"{result['failed']} token(s) left for the next pass."
                )
            )

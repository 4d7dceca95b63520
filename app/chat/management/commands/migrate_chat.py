from django.core.management.base import BaseCommand

from chat.migration import ChatMigrationService


class Command(BaseCommand):
    help = "Backfill conversations from legacy chat messages (phase 1) or clean up legacy fields (phase 2)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--cleanup",
            action="store_true",
            help="Clear receiver/is_read on migrated legacy rows instead of migrating",
        )

    def handle(self, *args, **options):
        if options.get("cleanup"):
            report = ChatMigrationService.cleanup_deprecated_fields()
            self.stdout.write(
                self.style.SUCCESS(f"Cleanup completed successfully! {report.summary()}")
            )
            return

        report = ChatMigrationService.migrate_to_conversations()
        style = self.style.WARNING if report.failed else self.style.SUCCESS
        self.stdout.write(style(f"Migration completed successfully! {report.summary()}"))

"""
Django management command to list catalog entries and their save folders.
"""

import json

from django.core.management.base import BaseCommand

from savesync.catalog import CatalogStore
from savesync.sync.targets import build_target


class Command(BaseCommand):
    help = "List catalog entries with the directory names their saves may use"

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        rows = [self._describe(entry) for entry in CatalogStore().iterate_entries()]

        if not rows:
            self.stdout.write(self.style.WARNING("No catalog entries found."))
            return

        if options["json"]:
            self.stdout.write(json.dumps(rows, indent=2))
        else:
            self._output_table(rows)

    def _describe(self, entry) -> dict:
        """Build the output row for one entry."""
        row = {
            "md5": entry.md5,
            "good_name": entry.good_name,
            "header_name": entry.header_name,
            "complete": entry.is_complete,
            "primary_dir": None,
            "alternate_dir": None,
        }
        if entry.is_complete:
            try:
                target = build_target(
                    entry.md5, entry.header_name, entry.good_name, entry.country_code
                )
            except ValueError:
                row["complete"] = False
            else:
                row["primary_dir"] = target.primary_dir_name
                row["alternate_dir"] = target.alternate_dir_name
        return row

    def _output_table(self, rows):
        """Output entries as formatted table."""
        self.stdout.write("\n" + "=" * 80)
        self.stdout.write(f"{'Game':<32} {'MD5':<34} {'Status':<10}")
        self.stdout.write("=" * 80)

        for row in rows:
            name = (row["good_name"] or row["header_name"] or "?")[:31]
            if row["complete"]:
                status = self.style.SUCCESS("complete")
            else:
                status = self.style.WARNING("partial")
            self.stdout.write(f"{name:<32} {row['md5']:<34} {status}")
            if row["complete"]:
                self.stdout.write(f"    {row['primary_dir']}")
                self.stdout.write(f"    {row['alternate_dir']}")

        self.stdout.write("=" * 80)
        self.stdout.write(f"Total: {len(rows)} entr{'y' if len(rows) == 1 else 'ies'}\n")

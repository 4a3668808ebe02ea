"""
Provision a new tenant with its own ledger schema.

Usage:
    python manage.py provision_tenant acme "Acme Ltd"
    python manage.py provision_tenant acme "Acme Ltd" --owner alice
    python manage.py provision_tenant acme "Acme Ltd" --schema tenant_acme --db-alias tenant_acme
    python manage.py provision_tenant acme "Acme Ltd" --no-chart

Creates:
    - the Tenant row (system schema)
    - schema <schema> with accounts, journal_entries, journal_entry_lines, entry_sequences
    - the entry-number counter and the default chart of accounts
"""
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from tenant.provisioning import default_schema_name, provision_tenant


class Command(BaseCommand):
    help = "Create a tenant, its schema and its ledger tables"

    def add_arguments(self, parser):
        parser.add_argument("slug", help="Unique URL-safe tenant identifier")
        parser.add_argument("name", help="Display name")
        parser.add_argument(
            "--schema",
            dest="schema_name",
            help="Schema name (default: tenant_<slug>)",
        )
        parser.add_argument(
            "--db-alias",
            default="default",
            help="Database alias holding the schema (default: default)",
        )
        parser.add_argument(
            "--owner",
            help="Username granted the OWNER role",
        )
        parser.add_argument(
            "--no-chart",
            action="store_true",
            help="Do not seed the default chart of accounts",
        )

    def handle(self, *args, **options):
        owner = None
        if options["owner"]:
            User = get_user_model()
            try:
                owner = User.objects.get(**{User.USERNAME_FIELD: options["owner"]})
            except User.DoesNotExist:
                raise CommandError(f"User {options['owner']!r} not found")

        schema_name = options["schema_name"] or default_schema_name(options["slug"])

        try:
            tenant = provision_tenant(
                slug=options["slug"],
                name=options["name"],
                schema_name=schema_name,
                db_alias=options["db_alias"],
                owner=owner,
                seed_chart=not options["no_chart"],
            )
        except ValidationError as e:
            raise CommandError("; ".join(e.messages))

        self.stdout.write(
            self.style.SUCCESS(
                f"Provisioned {tenant.slug} ({tenant.public_id}) -> "
                f"{tenant.db_alias}.{tenant.schema_name}"
            )
        )

"""
Management command to seed default roles for stores.

Creates Super Admin, Manager and Customer with their permission sets for
one or all stores. This command is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand, CommandError
from apps.rbac.services import RBACService
from apps.tenants.models import Store


class Command(BaseCommand):
    help = 'Seed default roles for store(s) (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--store',
            type=str,
            help='Store ID or slug to seed roles for',
        )
        parser.add_argument(
            '--all',
            action='store_true',
            help='Seed roles for all stores',
        )

    def handle(self, *args, **options):
        store_identifier = options.get('store')
        seed_all = options.get('all')

        if not store_identifier and not seed_all:
            raise CommandError('You must specify either --store=<id|slug> or --all')

        if store_identifier and seed_all:
            raise CommandError('Cannot specify both --store and --all')

        if seed_all:
            stores = list(Store.objects.all())
            self.stdout.write(f'Seeding roles for all {len(stores)} stores...\n')
        else:
            store = Store.objects.by_identifier(store_identifier)
            if store is None:
                raise CommandError(f'Store not found: {store_identifier}')
            stores = [store]
            self.stdout.write(f'Seeding roles for store: {store.name}\n')

        total_created = 0
        total_synced = 0

        for store in stores:
            counts = RBACService.seed_store_roles(store)
            total_created += counts['roles_created']
            total_synced += counts['roles_synced']
            self.stdout.write(
                f"  {store.slug}: {counts['roles_created']} created, {counts['roles_synced']} synced"
            )

        self.stdout.write(
            self.style.SUCCESS(
                f'\n✓ Seeding complete: {total_created} roles created, '
                f'{total_synced} roles synced across {len(stores)} store(s)'
            )
        )

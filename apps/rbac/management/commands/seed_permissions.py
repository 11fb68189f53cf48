"""
Management command to seed the canonical permission catalog.

Creates the permission modules and every ``<module>:<action>`` permission.
This command is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand
from apps.rbac.models import PermissionModule, Permission
from apps.rbac.services import RBACService


class Command(BaseCommand):
    help = 'Seed canonical permission modules and permissions (idempotent)'

    def handle(self, *args, **options):
        self.stdout.write('Seeding permission catalog...\n')

        counts = RBACService.seed_permissions()

        self.stdout.write(
            self.style.SUCCESS(
                f"\n✓ Seeding complete: {counts['modules_created']} modules created, "
                f"{counts['permissions_created']} permissions created, "
                f"{counts['permissions_updated']} permissions updated"
            )
        )
        self.stdout.write(
            f'Total: {PermissionModule.objects.count()} modules, '
            f'{Permission.objects.count()} permissions'
        )

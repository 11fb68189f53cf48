"""
Management command to create (or promote) a super admin account.

Super admins bypass every permission check in every store.
"""
from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.core.logging import SecurityLogger
from apps.rbac.models import User, AuditLog


class Command(BaseCommand):
    help = 'Create a super admin user, or promote an existing user'

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, required=True, help='Login email')
        parser.add_argument('--password', type=str, help='Password (required for a new user)')
        parser.add_argument('--first-name', type=str, default='', help='First name')
        parser.add_argument('--last-name', type=str, default='', help='Last name')

    @transaction.atomic
    def handle(self, *args, **options):
        email = User.objects.normalize_email(options['email'])
        password = options.get('password')

        if password:
            try:
                validate_password(password)
            except ValidationError as e:
                raise CommandError('; '.join(e.messages))

        user = User.objects.by_email(email)

        if user is None:
            if not password:
                raise CommandError('--password is required when creating a new user')
            user = User.objects.create_superuser(
                email=email,
                password=password,
                first_name=options['first_name'],
                last_name=options['last_name'],
            )
            action = 'super_admin_created'
            self.stdout.write(self.style.SUCCESS(f'✓ Created super admin: {email}'))
        else:
            user.is_superuser = True
            user.is_active = True
            if password:
                user.set_password(password)
            user.save()
            action = 'super_admin_promoted'
            self.stdout.write(self.style.SUCCESS(f'✓ Promoted existing user to super admin: {email}'))

        AuditLog.log_action(
            action=action,
            user=None,
            target_type='User',
            target_id=user.id,
            metadata={'email': email, 'trigger': 'management_command'},
        )
        SecurityLogger.log_event(action, level='warning', user_email=email)

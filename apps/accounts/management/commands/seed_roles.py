from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.accounts.models import UserRole
from apps.common.permissions import ROLE_CAPABILITIES


class Command(BaseCommand):
    help = "Create the SUPERADMIN / MANAGER / USER groups and optionally assign a user to a role."

    def add_arguments(self, parser):
        parser.add_argument("--assign", nargs=2, metavar=("USERNAME", "ROLE"), help="Put USERNAME in ROLE.")

    @transaction.atomic
    def handle(self, *args, **options):
        groups = {}
        for role in UserRole.values:
            group, created = Group.objects.get_or_create(name=role)
            groups[role] = group
            state = "created" if created else "exists"
            capabilities = len(ROLE_CAPABILITIES.get(role, ()))
            self.stdout.write(self.style.SUCCESS(f"{role}: {state} ({capabilities} capabilities)"))

        if not options.get("assign"):
            return
        username, role = options["assign"]
        role = role.upper()
        if role not in groups:
            raise CommandError(f"Unknown role {role}; choose one of {', '.join(UserRole.values)}.")
        user = get_user_model().objects.filter(username=username).first()
        if user is None:
            raise CommandError(f"User {username} does not exist.")
        user.groups.remove(*[group for name, group in groups.items() if name != role])
        user.groups.add(groups[role])
        user.role = role
        user.save(update_fields=["role"])
        self.stdout.write(self.style.SUCCESS(f"{username} -> {role}"))

from io import StringIO

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import CommandError, call_command
from django.test import TestCase

from apps.common.permissions import RolePermission

User = get_user_model()


class SeedRolesCommandTests(TestCase):
    def test_creates_role_groups_idempotently(self):
        call_command("seed_roles", stdout=StringIO())
        out = StringIO()
        call_command("seed_roles", stdout=out)
        self.assertEqual(set(Group.objects.values_list("name", flat=True)), {"SUPERADMIN", "MANAGER", "USER"})
        self.assertIn("MANAGER: exists", out.getvalue())

    def test_assign_moves_user_between_roles(self):
        user = User.objects.create_user(username="volunteer", password="volunteer123")
        self.assertFalse(RolePermission.has_capabilities(user, ["donations.view"]))

        call_command("seed_roles", assign=["volunteer", "manager"], stdout=StringIO())
        user.refresh_from_db()
        self.assertEqual(user.role, "MANAGER")
        self.assertEqual(list(user.groups.values_list("name", flat=True)), ["MANAGER"])
        self.assertTrue(RolePermission.has_capabilities(user, ["donations.view", "donations.cancel"]))
        self.assertFalse(RolePermission.has_capabilities(user, ["installments.default"]))

        call_command("seed_roles", assign=["volunteer", "SUPERADMIN"], stdout=StringIO())
        self.assertEqual(list(user.groups.values_list("name", flat=True)), ["SUPERADMIN"])

    def test_assign_rejects_unknown_user_or_role(self):
        with self.assertRaises(CommandError):
            call_command("seed_roles", assign=["ghost", "MANAGER"], stdout=StringIO())
        User.objects.create_user(username="someone", password="someone123")
        with self.assertRaises(CommandError):
            call_command("seed_roles", assign=["someone", "TREASURER"], stdout=StringIO())

    def test_superuser_flag_grants_superadmin_capabilities(self):
        root = User.objects.create_superuser(username="root", password="root12345", email="root@example.org")
        self.assertTrue(RolePermission.has_capabilities(root, ["audit.view", "donors.delete"]))

from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


ROLE_CAPABILITIES = {
    UserRole.SUPERADMIN: {
        "donors.view",
        "donors.manage",
        "donors.delete",
        "donations.view",
        "donations.manage",
        "donations.cancel",
        "installments.view",
        "installments.manage",
        "installments.default",
        "reports.view",
        "audit.view",
        "zakat.view",
        "zakat.manage",
    },
    UserRole.MANAGER: {
        "donors.view",
        "donors.manage",
        "donations.view",
        "donations.manage",
        "donations.cancel",
        "installments.view",
        "installments.manage",
        "reports.view",
        "zakat.view",
        "zakat.manage",
    },
    UserRole.USER: set(),
}


class RolePermission(BasePermission):
    @staticmethod
    def _resolve_role(user):
        if user.is_superuser:
            return UserRole.SUPERADMIN
        group_names = set(user.groups.values_list("name", flat=True))
        for role in (UserRole.SUPERADMIN, UserRole.MANAGER, UserRole.USER):
            if role in group_names:
                return role
        return getattr(user, "role", UserRole.USER)

    @classmethod
    def has_capabilities(cls, user, required):
        user_caps = ROLE_CAPABILITIES.get(cls._resolve_role(user), set())
        return all(cap in user_caps for cap in required)

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        action = getattr(view, "action", None) or request.method.lower()
        required = capability_map.get(action) or capability_map.get(request.method.lower()) or set()
        if not required:
            return True
        return self.has_capabilities(request.user, required)

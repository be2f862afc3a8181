"""
Role-based DRF permissions for the back office
"""
from rest_framework.permissions import BasePermission


def is_admin(user):
    return bool(user and user.is_authenticated and (user.is_admin or user.is_super_admin))


def is_super_admin(user):
    return bool(user and user.is_authenticated and user.is_super_admin)


class IsAdminOrSuperAdmin(BasePermission):
    """Admins and super admins"""
    message = 'Admin access required.'

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsSuperAdmin(BasePermission):
    """Super admins only"""
    message = 'Super admin access required.'

    def has_permission(self, request, view):
        return is_super_admin(request.user)


class IsEmailVerified(BasePermission):
    message = 'Please verify your email address first.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.email_verified_at)

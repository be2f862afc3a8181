"""
Back-office actions on user accounts that go through the approval gate
"""
from django.utils import timezone

from audit import actions as audit_actions
from authentication.approval_gate import ROLE_SUPER_ADMIN, ElevatedAction
from backend.errors import validation_failed_from

from .models import User
from .serializers import RoleChangeSerializer


def role_snapshot(user):
    return {
        'id': str(user.pk),
        'email': user.email,
        'role': user.role,
        'isAdmin': user.is_admin,
        'isSuperAdmin': user.is_super_admin,
    }


class ChangeRoleAction(ElevatedAction):
    """Promote or demote a user between USER, ADMIN and SUPER_ADMIN"""
    name = 'change_role'
    required_role = ROLE_SUPER_ADMIN
    forbid_self_action = True

    def clean_params(self, params):
        serializer = RoleChangeSerializer(data=params)
        if not serializer.is_valid():
            raise validation_failed_from(serializer.errors)
        return dict(serializer.validated_data)

    def snapshot(self, target):
        return role_snapshot(target)

    def is_noop(self, target, params):
        return target.role == params['role']

    def apply(self, target, params):
        target.apply_role(params['role'])
        target.save(update_fields=['is_admin', 'is_super_admin', 'updated_at'])

    def audit_action_for(self, before, after, params):
        old_role, new_role = before['role'], after['role']
        if new_role == User.ROLE_SUPER_ADMIN:
            return audit_actions.USER_PROMOTE_SUPERADMIN
        if old_role == User.ROLE_SUPER_ADMIN:
            return audit_actions.USER_DEMOTE_SUPERADMIN
        if new_role == User.ROLE_ADMIN:
            return audit_actions.USER_PROMOTE_ADMIN
        return audit_actions.USER_DEMOTE_ADMIN

    def audit_meta(self, justification, params):
        return {'justification': justification, 'newRole': params['role']}


class VerifyEmailAction(ElevatedAction):
    """Mark a user's email as verified without the emailed token"""
    name = 'verify_email'
    required_role = ROLE_SUPER_ADMIN
    forbid_self_action = True
    audit_action = audit_actions.USER_EMAIL_VERIFIED_BY_ADMIN

    def snapshot(self, target):
        return {
            'id': str(target.pk),
            'email': target.email,
            'emailVerifiedAt': target.email_verified_at.isoformat() if target.email_verified_at else None,
        }

    def is_noop(self, target, params):
        return target.email_verified_at is not None

    def apply(self, target, params):
        target.email_verified_at = timezone.now()
        target.save(update_fields=['email_verified_at', 'updated_at'])
        target.verification_tokens.all().delete()

    def audit_meta(self, justification, params):
        return {'justification': justification, 'method': 'manual-admin-override'}

"""
Registry of audit actions.

Each action belongs to a category; the category decides whether the audit
row must commit together with the change it records (durable) or may be
dropped when the write fails (best-effort).
"""
from dataclasses import dataclass

CATEGORY_IDENTITY = 'identity'
CATEGORY_SECURITY = 'security'
CATEGORY_CONTENT = 'content'

DURABLE_CATEGORIES = frozenset({CATEGORY_IDENTITY, CATEGORY_SECURITY})


@dataclass(frozen=True)
class AuditAction:
    name: str
    category: str
    label: str

    @property
    def requires_durable_audit(self) -> bool:
        return self.category in DURABLE_CATEGORIES


USER_PROMOTE_ADMIN = 'USER_PROMOTE_ADMIN'
USER_DEMOTE_ADMIN = 'USER_DEMOTE_ADMIN'
USER_PROMOTE_SUPERADMIN = 'USER_PROMOTE_SUPERADMIN'
USER_DEMOTE_SUPERADMIN = 'USER_DEMOTE_SUPERADMIN'
USER_EMAIL_VERIFIED_BY_ADMIN = 'USER_EMAIL_VERIFIED_BY_ADMIN'
SUPERADMIN_SECOND_FACTOR_SET = 'SUPERADMIN_SECOND_FACTOR_SET'
HOMEPAGE_FEATURED_UPDATED = 'HOMEPAGE_FEATURED_UPDATED'
APPLICATION_STATUS_CHANGED = 'APPLICATION_STATUS_CHANGED'
COURSE_CREATED = 'COURSE_CREATED'
COURSE_UPDATED = 'COURSE_UPDATED'
COURSE_DELETED = 'COURSE_DELETED'
COURSE_PUBLISH_TOGGLED = 'COURSE_PUBLISH_TOGGLED'
COURSE_FEE_UPSERTED = 'COURSE_FEE_UPSERTED'
NEWSLETTER_SENT = 'NEWSLETTER_SENT'
NEWSLETTER_SUBSCRIBER_UPDATED = 'NEWSLETTER_SUBSCRIBER_UPDATED'
NEWSLETTER_SUBSCRIBER_DELETED = 'NEWSLETTER_SUBSCRIBER_DELETED'

AUDIT_ACTIONS = {
    action.name: action for action in [
        AuditAction(USER_PROMOTE_ADMIN, CATEGORY_IDENTITY, 'Promoted user to admin'),
        AuditAction(USER_DEMOTE_ADMIN, CATEGORY_IDENTITY, 'Demoted admin to user'),
        AuditAction(USER_PROMOTE_SUPERADMIN, CATEGORY_IDENTITY, 'Promoted user to super admin'),
        AuditAction(USER_DEMOTE_SUPERADMIN, CATEGORY_IDENTITY, 'Demoted super admin'),
        AuditAction(USER_EMAIL_VERIFIED_BY_ADMIN, CATEGORY_IDENTITY, 'Email verified manually'),
        AuditAction(SUPERADMIN_SECOND_FACTOR_SET, CATEGORY_SECURITY, 'Second factor configured'),
        AuditAction(HOMEPAGE_FEATURED_UPDATED, CATEGORY_CONTENT, 'Homepage ranking changed'),
        AuditAction(APPLICATION_STATUS_CHANGED, CATEGORY_CONTENT, 'Application status changed'),
        AuditAction(COURSE_CREATED, CATEGORY_CONTENT, 'Course created'),
        AuditAction(COURSE_UPDATED, CATEGORY_CONTENT, 'Course updated'),
        AuditAction(COURSE_DELETED, CATEGORY_CONTENT, 'Course deleted'),
        AuditAction(COURSE_PUBLISH_TOGGLED, CATEGORY_CONTENT, 'Course publish state changed'),
        AuditAction(COURSE_FEE_UPSERTED, CATEGORY_CONTENT, 'Course fee saved'),
        AuditAction(NEWSLETTER_SENT, CATEGORY_CONTENT, 'Newsletter sent'),
        AuditAction(NEWSLETTER_SUBSCRIBER_UPDATED, CATEGORY_CONTENT, 'Subscriber updated'),
        AuditAction(NEWSLETTER_SUBSCRIBER_DELETED, CATEGORY_CONTENT, 'Subscriber deleted'),
    ]
}

ACTION_CHOICES = [(action.name, action.label) for action in AUDIT_ACTIONS.values()]


def get_action(name) -> AuditAction:
    try:
        return AUDIT_ACTIONS[name]
    except KeyError:
        raise ValueError(f"Unknown audit action: {name}") from None

"""
Approval gate for elevated back-office actions.

A single invocation walks these checks in order and stops at the first
failure:

    role -> params -> justification -> second factor -> self-action guard
         -> target lookup -> no-op short circuit -> apply + audit

The mutation and its audit event are written inside one transaction, so
either both become visible or neither does.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import transaction

from audit.services import AuditTrail
from backend.errors import Conflict, Forbidden, NotFound, ValidationFailed

from .permissions import is_admin, is_super_admin

logger = logging.getLogger(__name__)

ROLE_ADMIN = 'ADMIN'
ROLE_SUPER_ADMIN = 'SUPER_ADMIN'

MIN_JUSTIFICATION_LENGTH = 20


class JustificationRequired(ValidationFailed):
    default_detail = f'A justification of at least {MIN_JUSTIFICATION_LENGTH} characters is required.'
    default_code = 'JUSTIFICATION_REQUIRED'


class SecondFactorRequired(ValidationFailed):
    default_detail = 'Enter your second-factor password to confirm this action.'
    default_code = 'SECOND_FACTOR_REQUIRED'


class SecondFactorNotSet(Forbidden):
    default_detail = 'Set up a second-factor password before performing this action.'
    default_code = 'SECOND_FACTOR_NOT_SET'


class SecondFactorInvalid(Forbidden):
    default_detail = 'The second-factor password is incorrect.'
    default_code = 'SECOND_FACTOR_INVALID'


class SecondFactorAlreadySet(Conflict):
    default_detail = 'A second-factor password is already configured.'
    default_code = 'SECOND_FACTOR_ALREADY_SET'


class SelfActionForbidden(ValidationFailed):
    default_detail = 'You cannot perform this action on your own account.'
    default_code = 'SELF_ACTION_FORBIDDEN'


@dataclass
class GateResult:
    already: bool
    target: Any
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    audit_event: Any = None
    params: Dict[str, Any] = field(default_factory=dict)


class ElevatedAction:
    """
    Declares one sensitive mutation. Subclasses provide the snapshot, the
    no-op check and the mutation itself; the gate does the rest.
    """
    name = ''
    required_role = ROLE_ADMIN
    target_type = 'user'
    forbid_self_action = True
    audit_action = None

    def get_queryset(self):
        return get_user_model().objects.all()

    def clean_params(self, params) -> Dict[str, Any]:
        return params

    def snapshot(self, target) -> Dict[str, Any]:
        raise NotImplementedError

    def is_noop(self, target, params) -> bool:
        return False

    def apply(self, target, params):
        raise NotImplementedError

    def audit_action_for(self, before, after, params):
        return self.audit_action

    def audit_meta(self, justification, params):
        return {'justification': justification}


def actor_has_role(actor, role):
    if role == ROLE_SUPER_ADMIN:
        return is_super_admin(actor)
    return is_admin(actor)


class ApprovalGate:
    """Runs an ``ElevatedAction`` through the approval checks"""

    def __init__(self, action, audit=AuditTrail):
        self.action = action
        self.audit = audit

    def check_role(self, actor):
        if not actor_has_role(actor, self.action.required_role):
            raise Forbidden()

    def check_justification(self, justification):
        text = (justification or '').strip()
        if len(text) < MIN_JUSTIFICATION_LENGTH:
            raise JustificationRequired()
        return text

    def check_second_factor(self, actor, second_factor):
        if not actor.has_second_factor:
            if getattr(settings, 'ELEVATED_ACTIONS_REQUIRE_SECOND_FACTOR', False):
                raise SecondFactorNotSet()
            return
        if not second_factor:
            raise SecondFactorRequired()
        if not actor.check_second_factor(second_factor):
            logger.warning(f"Invalid second factor supplied by {actor.email} for {self.action.name}")
            raise SecondFactorInvalid()

    def check_self_action(self, actor, target_id):
        if self.action.forbid_self_action and str(target_id) == str(actor.pk):
            raise SelfActionForbidden()

    def load_target(self, target_id):
        try:
            return self.action.get_queryset().select_for_update().get(pk=target_id)
        except (ObjectDoesNotExist, ValueError, ValidationError):
            raise NotFound(f'{self.action.target_type.title()} not found.')

    def run(self, actor, target_id, justification='', second_factor=None, params=None,
            ip_address=None, user_agent=''):
        params = params or {}
        self.check_role(actor)
        params = self.action.clean_params(params)
        justification = self.check_justification(justification)
        self.check_second_factor(actor, second_factor)
        self.check_self_action(actor, target_id)

        with transaction.atomic():
            target = self.load_target(target_id)
            if self.action.is_noop(target, params):
                return GateResult(already=True, target=target, params=params)

            before = self.action.snapshot(target)
            self.action.apply(target, params)
            after = self.action.snapshot(target)
            event = self.audit.record(
                action=self.action.audit_action_for(before, after, params),
                actor=actor,
                target_type=self.action.target_type,
                target_id=target.pk,
                before=before,
                after=after,
                meta=self.action.audit_meta(justification, params),
                ip_address=ip_address,
                user_agent=user_agent,
            )

        logger.info(f"{self.action.name} applied by {actor.email} to {self.action.target_type} {target.pk}")
        return GateResult(
            already=False,
            target=target,
            before=before,
            after=after,
            audit_event=event,
            params=params,
        )


"""
Access policy evaluation.

The rules live in a single table keyed by (entity type, operation). Each rule
is a pure function of the actor and the candidate row, so the same decision
can be reproduced by the HTTP layer, the services, or a test without touching
the database.

Ownership is read from the row:
- owned content (notes, submissions, ...) carries ``owner_id``
- a profile is owned by the account sharing its primary key
- a stored attachment is owned by the first segment of its storage path
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .exceptions import PermissionDenied

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CREATE = 'create'
    READ = 'read'
    UPDATE = 'update'
    DELETE = 'delete'


class EntityType(str, Enum):
    ACCOUNT = 'account'
    PROFILE = 'profile'
    NOTE = 'note'
    CATEGORY = 'category'
    ASSIGNMENT = 'assignment'
    SUBMISSION = 'submission'
    ANNOUNCEMENT = 'announcement'
    COMMENT = 'comment'
    FEEDBACK = 'feedback'
    ATTACHMENT = 'attachment'


@dataclass(frozen=True)
class Actor:
    """The identity making a request; ``id`` is None when unauthenticated."""
    id: str | None = None

    @property
    def is_authenticated(self):
        return self.id is not None

    @classmethod
    def anonymous(cls):
        return cls(None)

    @classmethod
    def from_user(cls, user):
        if user is None or not getattr(user, 'is_authenticated', False):
            return cls.anonymous()
        return cls(str(user.pk))


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True, 'allowed')
UNAUTHENTICATED = Decision(False, 'unauthenticated')
NOT_OWNER = Decision(False, 'not_owner')
LOCKED = Decision(False, 'locked')
NOT_APPLICABLE = Decision(False, 'not_applicable')


def _field(row, name):
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _same(actor_id, value):
    return value is not None and str(value) == actor_id


def _owner_id(row):
    return _field(row, 'owner_id')


def _row_id(row):
    if isinstance(row, Mapping):
        return row.get('id', row.get('user_id'))
    return getattr(row, 'pk', None)


def path_owner(path):
    """First segment of a storage path, or None for an empty path."""
    if not path:
        return None
    head = str(path).lstrip('/').split('/', 1)[0]
    return head or None


def _attachment_path(row):
    if isinstance(row, str):
        return row
    return _field(row, 'path') or _field(row, 'file_path')


# Rule shapes. Each takes (actor, row, options) and assumes an authenticated actor.

def _any_authenticated(actor, row, options):
    return ALLOW


def _owner(actor, row, options):
    return ALLOW if _same(actor.id, _owner_id(row)) else NOT_OWNER


def _is_self(actor, row, options):
    return ALLOW if _same(actor.id, _row_id(row)) else NOT_OWNER


def _owner_while(field, value):
    def rule(actor, row, options):
        if not _same(actor.id, _owner_id(row)):
            return NOT_OWNER
        return ALLOW if _field(row, field) == value else LOCKED
    return rule


def _path_owner(actor, row, options):
    return ALLOW if _same(actor.id, path_owner(_attachment_path(row))) else NOT_OWNER


def _attachment_read(actor, row, options):
    if options.get('broad_attachment_read', True):
        return ALLOW
    return _path_owner(actor, row, options)


_submission_while_draft = _owner_while('status', 'draft')
_feedback_while_pending = _owner_while('status', 'pending')

C, R, U, D = Operation.CREATE, Operation.READ, Operation.UPDATE, Operation.DELETE

POLICY_TABLE = {
    # Accounts are removed only by themselves; creation is handled in evaluate().
    EntityType.ACCOUNT: {D: _is_self},
    EntityType.PROFILE: {R: _is_self, U: _is_self},
    EntityType.NOTE: {C: _owner, R: _owner, U: _owner, D: _owner},
    EntityType.CATEGORY: {R: _any_authenticated},
    EntityType.ASSIGNMENT: {R: _any_authenticated},
    EntityType.SUBMISSION: {
        C: _owner,
        R: _owner,
        U: _submission_while_draft,
        D: _submission_while_draft,
    },
    EntityType.ANNOUNCEMENT: {C: _owner, R: _any_authenticated, U: _owner, D: _owner},
    EntityType.COMMENT: {C: _owner, R: _any_authenticated, U: _owner, D: _owner},
    EntityType.FEEDBACK: {
        C: _owner,
        R: _owner,
        U: _feedback_while_pending,
        D: _feedback_while_pending,
    },
    EntityType.ATTACHMENT: {
        C: _path_owner,
        R: _attachment_read,
        U: _path_owner,
        D: _path_owner,
    },
}


def evaluate(actor, operation, entity_type, row=None, *, broad_attachment_read=True):
    """
    Decide whether ``actor`` may perform ``operation`` on ``row``.

    For create, ``row`` is the candidate new row (its owner as requested by
    the caller). Never raises and never mutates its inputs.
    """
    operation = Operation(operation)
    entity_type = EntityType(entity_type)

    if entity_type is EntityType.ACCOUNT and operation is Operation.CREATE:
        # Sign-up is the only thing an anonymous actor may do.
        return NOT_APPLICABLE if actor.is_authenticated else ALLOW

    if not actor.is_authenticated:
        return UNAUTHENTICATED

    rule = POLICY_TABLE[entity_type].get(operation)
    if rule is None:
        return NOT_APPLICABLE
    return rule(actor, row, {'broad_attachment_read': broad_attachment_read})


def require(actor, operation, entity_type, row=None, **options):
    """Evaluate and raise PermissionDenied on deny. Returns the Decision."""
    decision = evaluate(actor, operation, entity_type, row, **options)
    if not decision.allowed:
        logger.info(
            "Denied %s on %s for actor=%s (%s)",
            Operation(operation).value, EntityType(entity_type).value,
            actor.id, decision.reason,
        )
        raise PermissionDenied()
    return decision

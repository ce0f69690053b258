"""
Owner-scoped operations on classroom content.

Each service guards every read and write with the access policy and leaves
HTTP concerns to the views. Absent rows raise NotFound, denied rows raise
PermissionDenied.
"""
import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, OuterRef, Subquery
from django.utils import timezone

from .attachments import AttachmentBinder
from .exceptions import NotFound, PermissionDenied
from .models import Announcement, Assignment, Category, Comment, Feedback, Note, Profile, Submission
from .policies import EntityType, Operation, evaluate, require

logger = logging.getLogger(__name__)

User = get_user_model()

ATTACHMENT_FIELDS = ['file_path', 'file_name', 'file_type', 'file_size']


def _require_authenticated(actor):
    if not actor.is_authenticated:
        raise PermissionDenied()


class OwnedContentService:
    """
    CRUD for a model with an immutable ``owner`` foreign key.

    Subclasses set ``model``, ``entity_type`` and the fields an owner may
    change after creation.
    """
    model = None
    entity_type = None
    editable_fields = ()
    has_attachment = False

    def __init__(self, attachments=None):
        self.attachments = attachments or AttachmentBinder()

    def get_queryset(self):
        return self.model.objects.all()

    def is_shared(self, actor):
        # Probe with a row nobody owns: allowed means any authenticated actor may read.
        return evaluate(actor, Operation.READ, self.entity_type, {'owner_id': None}).allowed

    def list_visible(self, actor):
        _require_authenticated(actor)
        queryset = self.get_queryset()
        if not self.is_shared(actor):
            queryset = queryset.filter(owner_id=actor.id)
        return queryset

    def load(self, pk):
        try:
            return self.get_queryset().get(pk=pk)
        except (self.model.DoesNotExist, ValueError):
            raise NotFound(f'{self.model._meta.verbose_name.capitalize()} not found.')

    def get(self, actor, pk):
        row = self.load(pk)
        require(actor, Operation.READ, self.entity_type, row)
        return row

    @transaction.atomic
    def create(self, actor, upload=None, **fields):
        row = self.model(owner_id=actor.id, **fields)
        require(actor, Operation.CREATE, self.entity_type, row)

        descriptor = None
        if upload is not None:
            descriptor = self.attachments.bind(actor.id, upload)
            row.set_attachment(descriptor)
        try:
            row.save(force_insert=True)
        except Exception:
            self.attachments.unbind(descriptor)
            raise

        logger.info("Created %s %s for actor=%s", self.entity_type.value, row.pk, actor.id)
        return row

    @transaction.atomic
    def update(self, actor, pk, upload=None, remove_attachment=False, **fields):
        row = self.load(pk)
        require(actor, Operation.UPDATE, self.entity_type, row)

        changed = []
        for name, value in fields.items():
            if name not in self.editable_fields:
                continue
            setattr(row, name, value)
            changed.append(name)
        if not changed and upload is None and not remove_attachment:
            return row
        changed.append('updated_at')

        if self.has_attachment and upload is not None:
            def apply(descriptor):
                row.set_attachment(descriptor)
                row.save(update_fields=changed + ATTACHMENT_FIELDS)
            self.attachments.rebind(actor.id, row.attachment, upload, apply)
        else:
            row.save(update_fields=changed)
            if self.has_attachment and remove_attachment:
                self.attachments.detach(row)

        logger.info("Updated %s %s for actor=%s", self.entity_type.value, row.pk, actor.id)
        return row

    @transaction.atomic
    def delete(self, actor, pk):
        row = self.load(pk)
        require(actor, Operation.DELETE, self.entity_type, row)
        row.delete()
        logger.info("Deleted %s %s for actor=%s", self.entity_type.value, pk, actor.id)


class NoteService(OwnedContentService):
    model = Note
    entity_type = EntityType.NOTE
    editable_fields = ('title', 'body', 'category')
    has_attachment = True

    def get_queryset(self):
        return Note.objects.select_related('category')


class AnnouncementService(OwnedContentService):
    model = Announcement
    entity_type = EntityType.ANNOUNCEMENT
    editable_fields = ('title', 'body', 'category')
    has_attachment = True

    def get_queryset(self):
        return Announcement.objects.select_related(
            'category', 'owner__profile'
        ).annotate(comment_count=Count('comments'))


class CommentService(OwnedContentService):
    model = Comment
    entity_type = EntityType.COMMENT
    editable_fields = ('body',)

    def get_queryset(self):
        return Comment.objects.select_related('owner__profile')

    def list_for_announcement(self, actor, announcement_id):
        announcement = AnnouncementService(self.attachments).get(actor, announcement_id)
        return self.list_visible(actor).filter(announcement=announcement)

    def create(self, actor, upload=None, **fields):
        # The parent must exist and be readable before anyone may comment on it.
        announcement_id = fields.pop('announcement_id')
        fields['announcement'] = AnnouncementService(self.attachments).get(actor, announcement_id)
        return super().create(actor, **fields)


class FeedbackService(OwnedContentService):
    model = Feedback
    entity_type = EntityType.FEEDBACK
    # Status is moved by staff, never by the author.
    editable_fields = ('subject', 'message', 'type')


class ProfileService:

    editable_fields = ('first_name', 'last_name', 'avatar_url')

    def get(self, actor):
        _require_authenticated(actor)
        try:
            profile = Profile.objects.get(pk=actor.id)
        except Profile.DoesNotExist:
            raise NotFound('Profile not found.')
        require(actor, Operation.READ, EntityType.PROFILE, profile)
        return profile

    def update(self, actor, **fields):
        profile = self.get(actor)
        require(actor, Operation.UPDATE, EntityType.PROFILE, profile)
        changed = [name for name in fields if name in self.editable_fields]
        for name in changed:
            setattr(profile, name, fields[name])
        profile.save(update_fields=changed + ['updated_at'])
        return profile


class AccountService:

    @transaction.atomic
    def register(self, actor, username, email, password, first_name='', last_name=''):
        """Create an account and its profile row together."""
        require(actor, Operation.CREATE, EntityType.ACCOUNT)

        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name
        )
        user.set_password(password)
        user.save()
        Profile.objects.create(
            user=user,
            email=email,
            first_name=first_name,
            last_name=last_name
        )
        logger.info("Registered account %s", user.pk)
        return user

    @transaction.atomic
    def delete_account(self, actor):
        """Remove the account; owned rows and their attachments go with it."""
        _require_authenticated(actor)
        try:
            user = User.objects.get(pk=actor.id)
        except User.DoesNotExist:
            raise NotFound('Account not found.')
        require(actor, Operation.DELETE, EntityType.ACCOUNT, user)
        user.delete()
        logger.info("Deleted account %s", actor.id)


class CategoryService:

    def list(self, actor, kind=None):
        if not evaluate(actor, Operation.READ, EntityType.CATEGORY, None):
            raise PermissionDenied()
        queryset = Category.objects.all()
        if kind:
            queryset = queryset.filter(kind=kind)
        return queryset


class AssignmentService:
    """Read-only view of assignments, annotated with the actor's own submission."""

    def get_queryset(self, actor):
        own = Submission.objects.filter(assignment=OuterRef('pk'), owner_id=actor.id)
        return Assignment.objects.annotate(
            my_submission_status=Subquery(own.values('status')[:1])
        )

    def list(self, actor):
        if not evaluate(actor, Operation.READ, EntityType.ASSIGNMENT, None):
            raise PermissionDenied()
        return self.get_queryset(actor)

    def get(self, actor, pk):
        _require_authenticated(actor)
        try:
            assignment = self.get_queryset(actor).get(pk=pk)
        except (Assignment.DoesNotExist, ValueError):
            raise NotFound('Assignment not found.')
        require(actor, Operation.READ, EntityType.ASSIGNMENT, assignment)
        return assignment


def dashboard(actor, clock=None, limit=5):
    """Recent notes, upcoming assignments and recent announcements for the actor."""
    _require_authenticated(actor)
    now = (clock or timezone.now)()
    return {
        'recent_notes': list(NoteService().list_visible(actor)[:limit]),
        'upcoming_assignments': list(
            AssignmentService().list(actor).filter(due_at__gte=now)[:limit]
        ),
        'recent_announcements': list(AnnouncementService().list_visible(actor)[:limit]),
    }

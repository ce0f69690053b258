import uuid
from django.conf import settings
from django.db import models
from django.contrib.auth.models import AbstractUser

from .attachments import AttachmentDescriptor


class User(AbstractUser):
    """
    Account issued at sign-up.

    The UUID primary key is also the first segment of every storage path the
    account owns, so it must never change.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'users'


class Profile(models.Model):
    # Shares its primary key with the account
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='profile'
    )
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)
    avatar_url = models.URLField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'profiles'

    def __str__(self):
        return self.email


class AttachmentFields(models.Model):
    """
    Optional single attachment embedded in a row.

    ``file_path`` always starts with the owner's account id; the columns are
    either all set or all empty.
    """
    file_path = models.CharField(max_length=500, blank=True)
    file_name = models.CharField(max_length=255, blank=True)
    file_type = models.CharField(max_length=255, blank=True)
    file_size = models.BigIntegerField(null=True, blank=True)

    class Meta:
        abstract = True

    @property
    def attachment(self):
        if not self.file_path:
            return None
        return AttachmentDescriptor(
            path=self.file_path,
            name=self.file_name,
            media_type=self.file_type,
            size=self.file_size or 0,
        )

    def set_attachment(self, descriptor):
        if descriptor is None:
            self.file_path = ''
            self.file_name = ''
            self.file_type = ''
            self.file_size = None
        else:
            self.file_path = descriptor.path
            self.file_name = descriptor.name
            self.file_type = descriptor.media_type
            self.file_size = descriptor.size


class Category(models.Model):
    class Kind(models.TextChoices):
        NOTE = 'note', 'Note'
        ANNOUNCEMENT = 'announcement', 'Announcement'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    kind = models.CharField(max_length=20, choices=Kind.choices)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'categories'
        ordering = ['kind', 'name']
        verbose_name_plural = 'categories'

    def __str__(self):
        return f"{self.name} ({self.kind})"


class Note(AttachmentFields):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notes'
    )
    title = models.CharField(max_length=255)
    body = models.TextField()
    # Removing a category leaves the note uncategorized
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notes'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notes'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner', '-created_at'], name='notes_owner_i_5c6f1e_idx'),
        ]

    def __str__(self):
        return self.title


class Announcement(AttachmentFields):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='announcements'
    )
    title = models.CharField(max_length=255)
    body = models.TextField()
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='announcements'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'announcements'
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class Comment(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    announcement = models.ForeignKey(
        Announcement,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    body = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'comments'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['announcement', 'created_at'], name='comments_announc_8d2b7a_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.owner_id} on {self.announcement_id}"


class Assignment(models.Model):
    """Staff-authored; read-only to everyone else."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    description = models.TextField()
    due_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'assignments'
        ordering = ['due_at']

    def __str__(self):
        return self.title

    def is_overdue(self, now):
        return now > self.due_at


class Submission(AttachmentFields):
    """
    A student's work for one assignment.

    Status only moves draft -> submitted. The unique constraint is what keeps
    two concurrent first drafts from producing two rows.
    """
    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        SUBMITTED = 'submitted', 'Submitted'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name='submissions'
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='submissions'
    )
    body = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT
    )
    submitted_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'submissions'
        ordering = ['-updated_at']
        constraints = [
            models.UniqueConstraint(
                fields=['assignment', 'owner'],
                name='unique_assignment_owner_submission'
            )
        ]
        indexes = [
            models.Index(fields=['owner', 'status'], name='submissions_owner_i_3e9a41_idx'),
        ]

    def __str__(self):
        return f"{self.owner_id} - {self.assignment_id} ({self.status})"


class Feedback(models.Model):
    class Type(models.TextChoices):
        BUG = 'bug', 'Bug'
        FEATURE = 'feature', 'Feature request'
        GENERAL = 'general', 'General'
        COMPLAINT = 'complaint', 'Complaint'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        REVIEWED = 'reviewed', 'Reviewed'
        RESOLVED = 'resolved', 'Resolved'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='feedback'
    )
    subject = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=Type.choices)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'feedback'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner'], name='feedback_owner_i_71c0d2_idx'),
            models.Index(fields=['status'], name='feedback_status_4b8e19_idx'),
        ]

    def __str__(self):
        return self.subject

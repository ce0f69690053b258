"""
Release stored attachment objects when their rows go away.

This covers direct deletes as well as cascades (assignment -> submissions,
account -> everything it owns). The object is only
removed after the deleting transaction commits.
"""
from django.db.models.signals import post_delete
from django.dispatch import receiver

from .attachments import AttachmentBinder
from .models import Announcement, Note, Submission


@receiver(post_delete, sender=Note)
@receiver(post_delete, sender=Announcement)
@receiver(post_delete, sender=Submission)
def release_attachment(sender, instance, **kwargs):
    AttachmentBinder().release_on_commit(instance.attachment)

"""
Attachment binding.

Every stored object lives under ``<owner account id>/...``. That prefix is the
only thing storage-level access checks look at, so paths are always built
here from the owner id and never taken from the client.
"""
import logging
import mimetypes
import os
from dataclasses import dataclass

from django.conf import settings
from django.core.files.storage import storages
from django.db import transaction
from django.utils import timezone

from .exceptions import PayloadTooLarge
from .policies import path_owner

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 50 * 1024 * 1024
DEFAULT_MEDIA_TYPE = 'application/octet-stream'


@dataclass(frozen=True)
class AttachmentDescriptor:
    path: str
    name: str
    media_type: str
    size: int

    @property
    def owner_id(self):
        return path_owner(self.path)


class AttachmentBinder:
    """
    Stores and releases attachment objects.

    The storage backend defaults to the ``attachments`` alias in
    ``settings.STORAGES``; tests pass their own.
    """

    def __init__(self, storage=None, max_bytes=None, clock=None):
        self._storage = storage
        if max_bytes is None:
            max_bytes = getattr(settings, 'ATTACHMENT_MAX_BYTES', MAX_ATTACHMENT_BYTES)
        self.max_bytes = max_bytes
        self.clock = clock or timezone.now

    @property
    def storage(self):
        if self._storage is None:
            self._storage = storages['attachments']
        return self._storage

    def build_path(self, owner_id, filename):
        _, ext = os.path.splitext(filename or '')
        stamp = int(self.clock().timestamp() * 1000)
        return f"{owner_id}/{stamp}{ext.lower()}"

    def bind(self, owner_id, upload):
        """
        Store ``upload`` under the owner's prefix and describe it.

        The size ceiling is checked before anything is written.
        """
        if not owner_id:
            raise ValueError("owner_id is required to bind an attachment")

        size = upload.size
        if size is None or size > self.max_bytes:
            logger.info(
                "Rejected attachment of %s bytes for owner=%s (limit %s)",
                size, owner_id, self.max_bytes,
            )
            raise PayloadTooLarge(
                f'Attachment is {size} bytes; the limit is {self.max_bytes} bytes.'
            )

        display_name = os.path.basename(upload.name or '') or 'attachment'
        media_type = (
            getattr(upload, 'content_type', None)
            or mimetypes.guess_type(display_name)[0]
            or DEFAULT_MEDIA_TYPE
        )

        # The backend may alter the file name to avoid collisions but keeps the directory.
        stored_path = self.storage.save(self.build_path(owner_id, display_name), upload)
        logger.info("Bound attachment %s for owner=%s", stored_path, owner_id)

        return AttachmentDescriptor(
            path=stored_path,
            name=display_name,
            media_type=media_type,
            size=size,
        )

    def unbind(self, descriptor):
        """Remove the stored object. Unbinding nothing, or a missing object, is a no-op."""
        if descriptor is None or not descriptor.path:
            return
        if self.storage.exists(descriptor.path):
            self.storage.delete(descriptor.path)
            logger.info("Unbound attachment %s", descriptor.path)

    def release_on_commit(self, descriptor):
        """Unbind once the surrounding transaction commits; nothing on rollback."""
        if descriptor is None:
            return
        transaction.on_commit(lambda: self.unbind(descriptor))

    def rebind(self, owner_id, current, upload, apply):
        """
        Replace ``current`` with a new object built from ``upload``.

        ``apply`` persists the new descriptor on the parent row. The old object
        is released only after the new one is stored and applied; if either
        step fails the new object is removed and ``current`` stays as it was.
        """
        new = self.bind(owner_id, upload)
        try:
            apply(new)
        except Exception:
            logger.warning("Rolling back attachment %s after failed apply", new.path)
            self.unbind(new)
            raise
        self.release_on_commit(current)
        return new

    def detach(self, row):
        """Clear the row's attachment reference and release the object."""
        current = row.attachment
        if current is None:
            return
        row.set_attachment(None)
        row.save(update_fields=['file_path', 'file_name', 'file_type', 'file_size', 'updated_at'])
        self.release_on_commit(current)

    def open(self, path):
        return self.storage.open(path, 'rb')

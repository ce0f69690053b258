"""
Submission lifecycle.

States:  (none) -> draft -> submitted

- a draft can be started only before the due instant
- an existing draft may still be edited after it, but not submitted
- submitted is terminal; it is never edited, deleted or reverted

Each operation asks the access policy first and applies the state rule second.
A policy denial caused only by the row's state (the ``locked`` reason) is
reported as a LifecycleError so callers can tell "already submitted" apart
from "not yours".
"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .attachments import AttachmentBinder
from .exceptions import ConflictError, LifecycleError, NotFound, PermissionDenied
from .models import Assignment, Submission
from .policies import EntityType, Operation, evaluate

logger = logging.getLogger(__name__)


class SubmissionLifecycleManager:

    def __init__(self, clock=None, attachments=None):
        self.clock = clock or timezone.now
        self.attachments = attachments or AttachmentBinder(clock=self.clock)

    # Reads

    def get_submission(self, actor, submission_id):
        submission = self._load(submission_id)
        self._check(actor, Operation.READ, submission)
        return submission

    def list_own(self, actor):
        if not actor.is_authenticated:
            raise PermissionDenied()
        return Submission.objects.filter(owner_id=actor.id).select_related('assignment')

    def get_for_assignment(self, actor, assignment_id):
        """The actor's own submission for an assignment, or None."""
        assignment = self._load_assignment(actor, assignment_id)
        submission = self._find_submission(assignment, actor.id)
        if submission is not None:
            self._check(actor, Operation.READ, submission)
        return submission

    # Commands

    @transaction.atomic
    def start_or_update_draft(self, actor, assignment_id, body, upload=None,
                              remove_attachment=False):
        """
        Create the actor's draft for an assignment, or update the existing one.

        ``upload`` replaces any current attachment; ``remove_attachment``
        clears it. Returns the saved Submission.
        """
        assignment = self._load_assignment(actor, assignment_id)
        submission = self._find_submission(assignment, actor.id, for_update=True)

        if submission is None:
            submission, created = self._create_draft(actor, assignment, body, upload)
            if created:
                return submission
            # Lost the creation race; apply the change to the winning row instead.

        return self._update_draft(actor, submission, body, upload, remove_attachment)

    @transaction.atomic
    def submit(self, actor, submission_id):
        """
        Move the actor's draft to submitted, stamping ``submitted_at``.

        An unknown ``submission_id`` raises NotFound. Callers that look the
        draft up by assignment first (the HTTP layer) report a missing draft
        as a LifecycleError themselves.
        """
        submission = self._load(submission_id, for_update=True)
        self._check(actor, Operation.UPDATE, submission, locked_message='This assignment has already been submitted.')

        now = self.clock()
        if submission.assignment.is_overdue(now):
            raise LifecycleError('The due date for this assignment has passed.')

        submission.status = Submission.Status.SUBMITTED
        submission.submitted_at = now
        submission.save(update_fields=['status', 'submitted_at', 'updated_at'])
        logger.info("Submission %s submitted by actor=%s", submission.pk, actor.id)
        return submission

    @transaction.atomic
    def delete_draft(self, actor, submission_id):
        submission = self._load(submission_id, for_update=True)
        self._check(actor, Operation.DELETE, submission, locked_message='A submitted assignment cannot be deleted.')

        # The attachment object is released by the post_delete handler once committed.
        submission.delete()
        logger.info("Draft %s deleted by actor=%s", submission_id, actor.id)

    # Internals

    def _check(self, actor, operation, submission, locked_message=None):
        decision = evaluate(actor, operation, EntityType.SUBMISSION, submission)
        if decision.allowed:
            return
        if decision.reason == 'locked':
            raise LifecycleError(locked_message)
        logger.info(
            "Denied %s on submission %s for actor=%s (%s)",
            operation.value, submission.pk, actor.id, decision.reason,
        )
        raise PermissionDenied()

    def _load(self, submission_id, for_update=False):
        queryset = Submission.objects.select_related('assignment')
        if for_update:
            queryset = queryset.select_for_update(of=('self',))
        try:
            return queryset.get(pk=submission_id)
        except (Submission.DoesNotExist, ValueError):
            raise NotFound('Submission not found.')

    def _load_assignment(self, actor, assignment_id):
        if not actor.is_authenticated:
            raise PermissionDenied()
        try:
            assignment = Assignment.objects.get(pk=assignment_id)
        except (Assignment.DoesNotExist, ValueError):
            raise NotFound('Assignment not found.')
        if not evaluate(actor, Operation.READ, EntityType.ASSIGNMENT, assignment):
            raise PermissionDenied()
        return assignment

    def _find_submission(self, assignment, owner_id, for_update=False):
        queryset = Submission.objects.select_related('assignment')
        if for_update:
            queryset = queryset.select_for_update(of=('self',))
        return queryset.filter(assignment=assignment, owner_id=owner_id).first()

    def _create_draft(self, actor, assignment, body, upload):
        candidate = Submission(assignment=assignment, owner_id=actor.id, body=body)
        self._check(actor, Operation.CREATE, candidate)

        if assignment.is_overdue(self.clock()):
            raise LifecycleError('The due date has passed; a new submission cannot be started.')

        descriptor = None
        if upload is not None:
            descriptor = self.attachments.bind(actor.id, upload)
        candidate.set_attachment(descriptor)

        try:
            # Savepoint so a uniqueness violation leaves the outer transaction usable.
            with transaction.atomic():
                candidate.save(force_insert=True)
        except IntegrityError:
            self.attachments.unbind(descriptor)
            logger.info(
                "Concurrent draft for assignment=%s owner=%s; resolving as update",
                assignment.pk, actor.id,
            )
            existing = self._find_submission(assignment, actor.id, for_update=True)
            if existing is None:
                raise ConflictError()
            return existing, False

        logger.info("Draft %s started by actor=%s", candidate.pk, actor.id)
        return candidate, True

    def _update_draft(self, actor, submission, body, upload, remove_attachment):
        self._check(actor, Operation.UPDATE, submission, locked_message='This assignment has already been submitted.')

        submission.body = body
        fields = ['body', 'updated_at']

        if upload is not None:
            def apply(descriptor):
                submission.set_attachment(descriptor)
                submission.save(update_fields=fields + [
                    'file_path', 'file_name', 'file_type', 'file_size',
                ])
            self.attachments.rebind(actor.id, submission.attachment, upload, apply)
        elif remove_attachment:
            submission.save(update_fields=fields)
            self.attachments.detach(submission)
        else:
            submission.save(update_fields=fields)

        logger.info("Draft %s updated by actor=%s", submission.pk, actor.id)
        return submission

"""
Error taxonomy for the classroom core.

Every error is an APIException so DRF's handler renders it with the right
status code. None of them are retried here; callers decide what to show.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class PermissionDenied(APIException):
    """The access policy rejected the operation."""
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'permission_denied'


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class LifecycleError(APIException):
    """Illegal submission transition: already submitted, overdue, no draft."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This submission cannot be changed in its current state.'
    default_code = 'lifecycle_error'


class PayloadTooLarge(APIException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = 'Attachment exceeds the maximum allowed size.'
    default_code = 'payload_too_large'


class ConflictError(APIException):
    """Lost a creation race on the (assignment, owner) uniqueness constraint."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'A conflicting submission was created concurrently.'
    default_code = 'conflict'

from django.conf import settings
from rest_framework import permissions

from .policies import Actor, Operation, evaluate

METHOD_OPERATIONS = {
    'GET': Operation.READ,
    'HEAD': Operation.READ,
    'OPTIONS': Operation.READ,
    'POST': Operation.CREATE,
    'PUT': Operation.UPDATE,
    'PATCH': Operation.UPDATE,
    'DELETE': Operation.DELETE,
}


class EntityPolicyPermission(permissions.BasePermission):
    """
    Apply the access policy of ``view.entity_type`` to the object a view touches.

    The HTTP method selects the operation. This is the same decision the
    services make, exposed so plain DRF views can reuse it.
    """

    def has_permission(self, request, view):
        return Actor.from_user(request.user).is_authenticated

    def has_object_permission(self, request, view, obj):
        operation = METHOD_OPERATIONS.get(request.method)
        if operation is None:
            return False
        decision = evaluate(
            Actor.from_user(request.user),
            operation,
            view.entity_type,
            obj,
            broad_attachment_read=getattr(settings, 'ATTACHMENT_BROAD_READ', True),
        )
        return decision.allowed

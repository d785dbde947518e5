from rest_framework import permissions


class IsTransactionOwner(permissions.BasePermission):
    """
    Permission: Only the owner can read or change a transaction.
    """

    def has_object_permission(self, request, view, obj):
        return obj.user_id == request.user.id

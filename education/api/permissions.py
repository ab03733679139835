from rest_framework import permissions

from user.models import Role


def employee_of(user):
    return getattr(user, 'employee_profile', None)


def is_administrator(user) -> bool:
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    employee = employee_of(user)
    return employee is not None and employee.is_active and employee.role == Role.ADMIN


def visible_groups(queryset, user):
    """Administrators see every group; teachers only the groups they teach."""
    if is_administrator(user):
        return queryset
    employee = employee_of(user)
    if employee is None:
        return queryset.none()
    return queryset.filter(teacher=employee)


class CanAccessGroup(permissions.BasePermission):
    """
    Permission class for lesson and attendance operations.
    - Administrators can do everything
    - Teachers can work with lessons and attendance of their own groups
    """
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_superuser:
            return True
        employee = employee_of(request.user)
        return employee is not None and employee.is_active
    
    def has_object_permission(self, request, view, obj):
        if is_administrator(request.user):
            return True
        group = getattr(obj, 'group', obj)
        employee = employee_of(request.user)
        return employee is not None and group.teacher_id == employee.pk

from rest_framework import permissions


def _active_employee(user):
    if not user or not user.is_authenticated:
        return None
    employee = getattr(user, 'employee_profile', None)
    if employee is None or not employee.is_active:
        return None
    return employee


class IsAdministrator(permissions.BasePermission):
    """Only administrators (or superusers) may use the endpoint."""
    def has_permission(self, request, view):  # type: ignore
        if request.user and request.user.is_authenticated and request.user.is_superuser:
            return True
        employee = _active_employee(request.user)
        return employee is not None and employee.is_admin


class IsEmployee(permissions.BasePermission):
    """Permission to allow any employee to read, but only administrators to write"""
    def has_permission(self, request, view):  # type: ignore
        if request.user and request.user.is_authenticated and request.user.is_superuser:
            return True

        employee = _active_employee(request.user)
        if employee is None:
            return False

        if request.method in permissions.SAFE_METHODS:
            return True

        return employee.is_admin


class IsActiveEmployee(permissions.BasePermission):
    """Any active employee may read and write (attendance marking)."""
    def has_permission(self, request, view):  # type: ignore
        if request.user and request.user.is_authenticated and request.user.is_superuser:
            return True
        return _active_employee(request.user) is not None

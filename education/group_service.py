"""
Group mutations. Each one is paired with its history entries through
``record_group_change`` / ``record_group_changes``.
"""
import logging

from django.db import transaction
from django.utils import timezone

from education.models import Group, GroupStatus, HistoryAction, StudentGroup
from education.api.exceptions import (
    GroupHasDependenciesError,
    MembershipNotFoundError,
    ScheduleValidationError,
    StudentAlreadyInGroupError,
)
from education.history_service import (
    format_field_edited_description,
    format_status_changed_description,
    format_student_added_description,
    format_student_removed_description,
    format_teacher_changed_description,
    format_weekly_day,
    record_group_change,
    record_group_changes,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = [
    'course', 'teacher', 'weekly_day', 'start_time', 'duration_minutes', 'timezone',
    'start_date', 'end_date', 'capacity', 'monthly_price', 'status', 'note', 'photos_folder_url',
]
PLAIN_TRACKED_FIELDS = [
    'start_time', 'duration_minutes', 'timezone', 'start_date', 'end_date',
    'capacity', 'monthly_price', 'note', 'photos_folder_url',
]


def create_group(data, actor=None) -> Group:
    group = Group(**data)

    def mutate():
        group.save()
        return group

    created = record_group_change(
        group,
        actor,
        HistoryAction.CREATED,
        lambda saved: f'Створено групу: {saved.title}',
        mutate,
    )
    logger.info(f"Group {created.public_id} created")
    return created


def _edit_entries(group, data):
    entries = []

    new_teacher = data.get('teacher')
    if new_teacher is not None and new_teacher.pk != group.teacher_id:
        entries.append({
            'action_type': HistoryAction.TEACHER_CHANGED,
            'description': format_teacher_changed_description(group.teacher.full_name, new_teacher.full_name),
            'old_value': group.teacher_id,
            'new_value': new_teacher.pk,
        })

    new_course = data.get('course')
    if new_course is not None and new_course.pk != group.course_id:
        entries.append({
            'action_type': HistoryAction.EDITED,
            'description': format_field_edited_description('course_id', group.course.title, new_course.title),
            'old_value': group.course.title,
            'new_value': new_course.title,
        })

    if 'weekly_day' in data and data['weekly_day'] != group.weekly_day:
        old_day = format_weekly_day(group.weekly_day)
        new_day = format_weekly_day(data['weekly_day'])
        entries.append({
            'action_type': HistoryAction.EDITED,
            'description': format_field_edited_description('weekly_day', old_day, new_day),
            'old_value': old_day,
            'new_value': new_day,
        })

    for field in PLAIN_TRACKED_FIELDS:
        if field in data and data[field] != getattr(group, field):
            old_value, new_value = getattr(group, field), data[field]
            entries.append({
                'action_type': HistoryAction.EDITED,
                'description': format_field_edited_description(field, old_value, new_value),
                'old_value': old_value,
                'new_value': new_value,
            })

    if 'status' in data and data['status'] != group.status:
        entries.append({
            'action_type': HistoryAction.STATUS_CHANGED,
            'description': format_status_changed_description(group.status, data['status']),
            'old_value': group.status,
            'new_value': data['status'],
        })

    return entries


def update_group(group, data, actor=None) -> Group:
    """Apply ``data`` and write one history entry per changed tracked field."""
    unknown = set(data) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f'Fields cannot be edited: {", ".join(sorted(unknown))}')

    entries = _edit_entries(group, data)

    def mutate():
        for field, value in data.items():
            setattr(group, field, value)
        group.save()
        return group

    updated = record_group_changes(group, actor, mutate, entries)
    logger.info(f"Group {group.public_id} updated ({len(entries)} changes)")
    return updated


def update_group_status(group, status, actor=None) -> Group:
    if status not in GroupStatus.values:
        raise ScheduleValidationError({'status': 'Невірний статус'})
    if status == group.status:
        return group

    old_status = group.status

    def mutate():
        group.status = status
        group.save(update_fields=['status', 'updated_at'])
        return group

    return record_group_change(
        group,
        actor,
        HistoryAction.STATUS_CHANGED,
        format_status_changed_description(old_status, status),
        mutate,
        old_value=old_status,
        new_value=status,
    )


def set_group_active(group, is_active, actor=None) -> Group:
    """Archive (``is_active=False``) or restore a group."""
    if group.is_active == is_active:
        return group

    def mutate():
        group.is_active = is_active
        group.save(update_fields=['is_active', 'updated_at'])
        return group

    return record_group_change(
        group,
        actor,
        HistoryAction.EDITED,
        'Групу відновлено' if is_active else 'Групу архівовано',
        mutate,
        old_value=not is_active,
        new_value=is_active,
    )


def group_dependencies(group):
    return {
        'students': group.memberships.count(),
        'lessons': group.lessons.count(),
        'payments': group.payments.count(),
    }


def delete_group(group):
    """Delete a group with no memberships, lessons or payments; refuse otherwise."""
    dependencies = group_dependencies(group)
    if any(dependencies.values()):
        raise GroupHasDependenciesError()
    public_id = group.public_id
    with transaction.atomic():
        group.delete()
    logger.info(f"Group {public_id} deleted")


def add_student_to_group(group, student, actor=None, join_date=None, notes=None) -> StudentGroup:
    """
    Add a student to a group. A previous membership with the same join date
    is reactivated; otherwise a new membership row is created.
    """
    if StudentGroup.objects.filter(group=group, student=student, is_active=True).exists():
        raise StudentAlreadyInGroupError()

    join_date = join_date or timezone.localdate()

    def mutate():
        membership, created = StudentGroup.objects.get_or_create(
            group=group,
            student=student,
            join_date=join_date,
            defaults={'notes': notes},
        )
        if not created:
            membership.is_active = True
            membership.leave_date = None
            membership.save(update_fields=['is_active', 'leave_date', 'updated_at'])
        return membership

    return record_group_change(
        group,
        actor,
        HistoryAction.STUDENT_ADDED,
        format_student_added_description(student.full_name),
        mutate,
        new_value=student.full_name,
    )


def remove_student_from_group(group, student, actor=None) -> StudentGroup:
    """Soft removal: the membership is kept with ``is_active=False`` and a leave date."""
    membership = StudentGroup.objects.filter(group=group, student=student, is_active=True).first()
    if membership is None:
        raise MembershipNotFoundError()

    def mutate():
        membership.is_active = False
        membership.leave_date = timezone.localdate()
        membership.save(update_fields=['is_active', 'leave_date', 'updated_at'])
        return membership

    return record_group_change(
        group,
        actor,
        HistoryAction.STUDENT_REMOVED,
        format_student_removed_description(student.full_name),
        mutate,
        old_value=student.full_name,
    )

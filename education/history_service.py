"""
Append-only audit trail of group changes.

Every group-mutating operation goes through ``record_group_change`` (or
``record_group_changes`` for edits touching several fields), which runs the
mutation and writes the matching history entries in one transaction.
"""
import logging
from datetime import date

from django.db import transaction

from education.models import GroupHistory, HistoryAction, DAY_SHORT_NAMES

logger = logging.getLogger(__name__)

EMPTY_VALUE = '(порожньо)'
SYSTEM_ACTOR_NAME = 'Система'

STATUS_LABELS = {
    'active': 'Активна',
    'graduate': 'Випуск',
    'inactive': 'Неактивна',
}

FIELD_LABELS = {
    'course_id': 'Курс',
    'title': 'Назва',
    'weekly_day': 'День тижня',
    'start_time': 'Час початку',
    'duration_minutes': 'Тривалість',
    'start_date': 'Дата початку',
    'end_date': 'Дата закінчення',
    'capacity': 'Місць',
    'monthly_price': 'Ціна за місяць',
    'status': 'Статус',
    'note': 'Нотатка',
    'photos_folder_url': 'Посилання на фото',
    'timezone': 'Часовий пояс',
}


def _as_text(value):
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def get_actor_name(user) -> str:
    """Display name of the acting user, frozen into the history row."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return SYSTEM_ACTOR_NAME
    employee = getattr(user, 'employee_profile', None)
    if employee is not None and employee.full_name:
        return employee.full_name
    return user.get_full_name() or user.email


def add_group_history_entry(group_id, action_type, description, user_id=None, user_name=None,
                            old_value=None, new_value=None) -> int:
    """Insert one history row and return its id. Identical events are not deduplicated."""
    if action_type not in HistoryAction.values:
        raise ValueError(f'Unknown group history action: {action_type}')

    entry = GroupHistory.objects.create(
        group_id=group_id,
        action_type=action_type,
        action_description=description,
        old_value=_as_text(old_value),
        new_value=_as_text(new_value),
        user_id=user_id,
        user_name=user_name or SYSTEM_ACTOR_NAME,
    )
    logger.info(f"Group {group_id} history: {action_type} by {entry.user_name}")
    return entry.id


def get_group_history(group_id, limit=None):
    queryset = GroupHistory.objects.filter(group_id=group_id).order_by('-created_at', '-id')
    if limit:
        queryset = queryset[:limit]
    return list(queryset)


def get_recent_group_history(group_id, count=4):
    return get_group_history(group_id, limit=count)


def record_group_changes(group, actor, mutate, entries):
    """
    Run ``mutate()`` and write every entry of ``entries`` in one transaction.

    ``entries`` is an iterable of dicts with ``action_type``, ``description``
    and optional ``old_value``/``new_value``; it may also be a callable taking
    the mutation result and returning such an iterable.
    """
    user_id = actor.pk if actor is not None and getattr(actor, 'is_authenticated', False) else None
    user_name = get_actor_name(actor)

    with transaction.atomic():
        result = mutate()
        if callable(entries):
            entries = entries(result)
        for entry in entries:
            add_group_history_entry(
                group.pk,
                entry['action_type'],
                entry['description'],
                user_id=user_id,
                user_name=user_name,
                old_value=entry.get('old_value'),
                new_value=entry.get('new_value'),
            )
    return result


def record_group_change(group, actor, action_type, description, mutate, old_value=None, new_value=None):
    """
    Mutate-and-log for a single event. ``description`` may be a string or a
    callable receiving the mutation result.
    """
    def build_entries(result):
        text = description(result) if callable(description) else description
        return [{
            'action_type': action_type,
            'description': text,
            'old_value': old_value,
            'new_value': new_value,
        }]

    return record_group_changes(group, actor, mutate, build_entries)


def format_student_added_description(student_name: str) -> str:
    return f'Додано учня: {student_name}'


def format_student_removed_description(student_name: str) -> str:
    return f'Видалено учня: {student_name}'


def format_teacher_changed_description(old_teacher_name: str, new_teacher_name: str) -> str:
    return f'Змінено викладача: {old_teacher_name} → {new_teacher_name}'


def format_status_changed_description(old_status: str, new_status: str) -> str:
    old_label = STATUS_LABELS.get(old_status, old_status)
    new_label = STATUS_LABELS.get(new_status, new_status)
    return f'Змінено статус: {old_label} → {new_label}'


def format_lesson_conducted_description(lesson_date, topic=None) -> str:
    lesson_date = _as_text(lesson_date)
    if topic:
        return f'Проведено заняття: {lesson_date} ({topic})'
    return f'Проведено заняття: {lesson_date}'


def format_field_edited_description(field_name: str, old_value, new_value) -> str:
    label = FIELD_LABELS.get(field_name, field_name)
    old_text = _as_text(old_value) or EMPTY_VALUE
    new_text = _as_text(new_value) or EMPTY_VALUE
    return f'Змінено {label}: {old_text} → {new_text}'


def format_weekly_day(weekly_day) -> str:
    return DAY_SHORT_NAMES.get(weekly_day, str(weekly_day))

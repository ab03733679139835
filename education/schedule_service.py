"""
Lesson schedule generation and lesson lifecycle.

A group's weekly rule (``weekly_day``, ``start_time``, ``duration_minutes``)
is projected onto concrete ``Lesson`` rows for a forward window of weeks.
Generation is idempotent: dates that already have a lesson are skipped.
"""
import logging
import re
from datetime import date, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import APIException

from education.models import Group, GroupStatus, HistoryAction, Lesson, LessonStatus
from education.api.exceptions import (
    GroupNotFoundError,
    LessonAlreadyCanceledError,
    LessonDateConflictError,
    LessonHasAttendanceError,
    ScheduleValidationError,
)
from education.history_service import format_lesson_conducted_description, record_group_change

logger = logging.getLogger(__name__)

DEFAULT_WEEKS_AHEAD = 8
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
CANCELED_TOPIC = 'Скасовано'


def validate_weeks_ahead(weeks_ahead):
    if isinstance(weeks_ahead, bool) or not isinstance(weeks_ahead, int) or weeks_ahead <= 0:
        raise ScheduleValidationError({'weeks_ahead': 'Кількість тижнів має бути додатним цілим числом.'})


def validate_start_time(value):
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ScheduleValidationError({'start_time': 'Некоректний формат часу. Використовуйте ГГ:ХХ'})


def validate_recurrence(group):
    """Raise ScheduleValidationError when the group's weekly rule cannot be projected."""
    errors = {}
    weekly_day = group.weekly_day
    if isinstance(weekly_day, bool) or not isinstance(weekly_day, int) or not 1 <= weekly_day <= 7:
        errors['weekly_day'] = 'День тижня має бути від 1 до 7'
    if not isinstance(group.start_time, str) or not TIME_PATTERN.match(group.start_time):
        errors['start_time'] = 'Некоректний формат часу. Використовуйте ГГ:ХХ'
    duration = group.duration_minutes
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        errors['duration_minutes'] = 'Тривалість має бути додатним числом хвилин.'
    try:
        ZoneInfo(group.timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        errors['timezone'] = f'Невідомий часовий пояс: {group.timezone}'
    if errors:
        raise ScheduleValidationError(errors)


def lesson_dates_for_group(group, weeks_ahead, today=None):
    """
    Candidate lesson dates: ``weeks_ahead`` weekly occurrences of the group's
    weekday starting at ``max(today, start_date)`` (or today when the group
    has no start date), with dates past ``end_date`` dropped.
    """
    today = today or timezone.localdate()
    anchor = max(today, group.start_date) if group.start_date else today
    offset = (group.weekly_day - anchor.isoweekday()) % 7
    first = anchor + timedelta(days=offset)

    dates = []
    for week in range(weeks_ahead):
        candidate = first + timedelta(weeks=week)
        if group.start_date and candidate < group.start_date:
            continue
        if group.end_date and candidate > group.end_date:
            continue
        dates.append(candidate)
    return dates


def generate_lessons_for_group(group_id, weeks_ahead=DEFAULT_WEEKS_AHEAD, created_by=None, today=None):
    validate_weeks_ahead(weeks_ahead)

    with transaction.atomic():
        group = Group.objects.select_for_update().filter(pk=group_id).first()
        if group is None:
            raise GroupNotFoundError()
        validate_recurrence(group)

        candidates = lesson_dates_for_group(group, weeks_ahead, today)
        existing = set(
            Lesson.objects.filter(group=group, lesson_date__in=candidates).values_list('lesson_date', flat=True)
        )

        generated = 0
        skipped = 0
        for lesson_date in candidates:
            if lesson_date in existing:
                skipped += 1
                continue
            start, end = group.lesson_bounds(lesson_date)
            Lesson.objects.create(
                group=group,
                lesson_date=lesson_date,
                start_datetime=start,
                end_datetime=end,
                status=LessonStatus.SCHEDULED,
                created_by=created_by,
            )
            generated += 1

    logger.info(f"Generated {generated} lessons for group {group_id} ({skipped} skipped, {weeks_ahead} weeks)")
    return {'generated': generated, 'skipped': skipped}


def _error_message(exc) -> str:
    if isinstance(exc, APIException):
        detail = exc.detail
        if isinstance(detail, dict):
            return '; '.join(f'{key}: {value}' for key, value in detail.items())
        return str(detail)
    return str(exc)


def generate_lessons_for_all_groups(weeks_ahead=DEFAULT_WEEKS_AHEAD, created_by=None, today=None):
    """
    Run the generator for every active group. A failure in one group is
    recorded in that group's result entry and does not stop the others.
    """
    validate_weeks_ahead(weeks_ahead)

    groups = Group.objects.filter(is_active=True, status=GroupStatus.ACTIVE).order_by('id')
    results = []
    total_generated = 0
    total_skipped = 0
    failed = 0

    for group_id, group_title in groups.values_list('id', 'title'):
        try:
            outcome = generate_lessons_for_group(group_id, weeks_ahead, created_by=created_by, today=today)
        except Exception as e:
            failed += 1
            logger.error(f"Lesson generation failed for group {group_id}: {str(e)}")
            results.append({
                'group_id': group_id,
                'group_title': group_title,
                'generated': 0,
                'skipped': 0,
                'error': _error_message(e),
            })
            continue

        total_generated += outcome['generated']
        total_skipped += outcome['skipped']
        results.append({'group_id': group_id, 'group_title': group_title, **outcome})

    logger.info(
        f"Batch lesson generation: {total_generated} generated, {total_skipped} skipped, "
        f"{failed} failed across {len(results)} groups"
    )
    return {
        'results': results,
        'total_generated': total_generated,
        'total_skipped': total_skipped,
        'failed': failed,
    }


def get_lessons_for_group(group_id, start_date=None, end_date=None):
    if not Group.objects.filter(pk=group_id).exists():
        raise GroupNotFoundError()
    queryset = Lesson.objects.filter(group_id=group_id)
    if start_date:
        queryset = queryset.filter(lesson_date__gte=start_date)
    if end_date:
        queryset = queryset.filter(lesson_date__lte=end_date)
    return list(queryset.order_by('lesson_date'))


def get_upcoming_lessons(limit=10, teacher_id=None, today=None):
    today = today or timezone.localdate()
    queryset = (
        Lesson.objects
        .select_related('group', 'group__course', 'group__teacher')
        .filter(lesson_date__gte=today)
        .exclude(status=LessonStatus.CANCELED)
    )
    if teacher_id:
        queryset = queryset.filter(group__teacher_id=teacher_id)
    return list(queryset.order_by('lesson_date', 'start_datetime')[:limit])


def get_lessons_in_range(start_date, end_date, group_id=None, teacher_id=None, course_id=None):
    """Calendar view across groups."""
    queryset = (
        Lesson.objects
        .select_related('group', 'group__course', 'group__teacher')
        .filter(lesson_date__gte=start_date, lesson_date__lte=end_date)
    )
    if group_id:
        queryset = queryset.filter(group_id=group_id)
    if teacher_id:
        queryset = queryset.filter(group__teacher_id=teacher_id)
    if course_id:
        queryset = queryset.filter(group__course_id=course_id)
    return list(queryset.order_by('start_datetime'))


def cancel_lesson(lesson, actor=None, reason=None):
    if lesson.status == LessonStatus.CANCELED:
        raise LessonAlreadyCanceledError()
    lesson.status = LessonStatus.CANCELED
    lesson.topic = reason or CANCELED_TOPIC
    lesson.save(update_fields=['status', 'topic', 'updated_at'])
    actor_id = actor.pk if actor is not None else None
    logger.info(f"Lesson {lesson.pk} of group {lesson.group_id} canceled by user {actor_id}")
    return lesson


def reschedule_lesson(lesson, new_date: date, new_time=None, keep_duration=False):
    """
    Move a lesson to ``new_date`` (and optionally ``new_time``). The lesson
    keeps the group's duration only when ``keep_duration`` is set, otherwise
    it gets the default lesson length.
    """
    group = lesson.group
    if new_time is None:
        local_start = timezone.localtime(lesson.start_datetime, ZoneInfo(group.timezone))
        new_time = local_start.strftime('%H:%M')
    validate_start_time(new_time)

    if Lesson.objects.filter(group=group, lesson_date=new_date).exclude(pk=lesson.pk).exists():
        raise LessonDateConflictError()

    duration = group.duration_minutes if keep_duration else settings.DEFAULT_LESSON_DURATION_MINUTES
    start, end = group.lesson_bounds(new_date, duration_minutes=duration, start_time=new_time)

    lesson.lesson_date = new_date
    lesson.start_datetime = start
    lesson.end_datetime = end
    lesson.status = LessonStatus.SCHEDULED
    lesson.save(update_fields=['lesson_date', 'start_datetime', 'end_datetime', 'status', 'updated_at'])
    logger.info(f"Lesson {lesson.pk} rescheduled to {new_date} {new_time}")
    return lesson


def mark_lesson_done(lesson, actor=None, topic=None):
    """Mark the lesson conducted; a history entry is written only on an actual status change."""
    if topic is not None:
        lesson.topic = topic

    if lesson.status == LessonStatus.DONE:
        if topic is not None:
            lesson.save(update_fields=['topic', 'updated_at'])
        return lesson

    def mutate():
        lesson.status = LessonStatus.DONE
        lesson.save(update_fields=['status', 'topic', 'updated_at'])
        return lesson

    return record_group_change(
        lesson.group,
        actor,
        HistoryAction.LESSON_CONDUCTED,
        lambda done: format_lesson_conducted_description(done.lesson_date, done.topic),
        mutate,
        new_value=lesson.lesson_date,
    )


def set_lesson_status(lesson, status, actor=None):
    if status not in LessonStatus.values:
        raise ScheduleValidationError({'status': 'Невірний статус'})
    if status == LessonStatus.DONE:
        return mark_lesson_done(lesson, actor)
    if status == LessonStatus.CANCELED:
        return cancel_lesson(lesson, actor)
    lesson.status = status
    lesson.save(update_fields=['status', 'updated_at'])
    return lesson


def update_lesson_topic(lesson, topic):
    lesson.topic = topic or None
    lesson.save(update_fields=['topic', 'updated_at'])
    return lesson


def delete_lesson(lesson):
    """Refuse to delete a lesson that already has attendance."""
    if lesson.attendance_records.exists():
        raise LessonHasAttendanceError()
    lesson_id, group_id = lesson.pk, lesson.group_id
    lesson.delete()
    logger.info(f"Lesson {lesson_id} of group {group_id} deleted")

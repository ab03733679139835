"""
Attendance ledger: per-student, per-lesson status with upsert semantics,
bulk operations and aggregate statistics.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction
from django.db.models import Count, Q

from education.models import Attendance, AttendanceStatus, Lesson, LessonStatus, StudentGroup
from education.api.exceptions import (
    InvalidAttendanceStatusError,
    InvalidMakeupLessonError,
    LessonNotFoundError,
    StudentNotFoundError,
)
from user.models import Student

logger = logging.getLogger(__name__)

STATUS_KEYS = [status.value for status in AttendanceStatus]


def calculate_attendance_rate(present, total) -> int:
    """Percentage of present marks rounded half-up; 0 when nothing is recorded."""
    if not total:
        return 0
    rate = Decimal(present) * 100 / Decimal(total)
    return int(rate.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _status_counts():
    counts = {'total': Count('id')}
    for key in STATUS_KEYS:
        counts[key] = Count('id', filter=Q(status=key))
    return counts


def _with_rate(row):
    row['attendance_rate'] = calculate_attendance_rate(row['present'], row['total'])
    return row


def _active_student_ids(group_id):
    return StudentGroup.objects.filter(
        group_id=group_id,
        is_active=True,
        student__is_active=True,
    ).values_list('student_id', flat=True)


def _get_lesson(lesson_id):
    lesson = Lesson.objects.select_related('group').filter(pk=lesson_id).first()
    if lesson is None:
        raise LessonNotFoundError()
    return lesson


def _validate_status(status):
    if status not in STATUS_KEYS:
        raise InvalidAttendanceStatusError()


def set_attendance(lesson_id, student_id, status, updated_by=None, comment=None, makeup_lesson_id=None) -> int:
    """Insert or update the single attendance row of ``(lesson_id, student_id)`` and return its id."""
    _validate_status(status)
    lesson = _get_lesson(lesson_id)
    if not Student.objects.filter(pk=student_id).exists():
        raise StudentNotFoundError()

    if makeup_lesson_id:
        makeup_lesson = Lesson.objects.filter(pk=makeup_lesson_id).first()
        if makeup_lesson is None:
            raise InvalidMakeupLessonError()
        if makeup_lesson.group_id != lesson.group_id:
            logger.warning(
                f"Attendance for student {student_id} on lesson {lesson_id} (group {lesson.group_id}) "
                f"references makeup lesson {makeup_lesson_id} from group {makeup_lesson.group_id}"
            )

    record, created = Attendance.objects.update_or_create(
        lesson_id=lesson_id,
        student_id=student_id,
        defaults={
            'status': status,
            'comment': comment or None,
            'makeup_lesson_id': makeup_lesson_id or None,
            'updated_by': updated_by,
        },
    )
    return record.id


def set_attendance_for_all(lesson_id, status, updated_by=None) -> int:
    """
    Apply ``status`` to every active student of the lesson's group as one
    unit: either every row is written or none is.
    """
    _validate_status(status)
    lesson = _get_lesson(lesson_id)
    student_ids = list(
        Student.objects.filter(id__in=_active_student_ids(lesson.group_id))
        .order_by('full_name')
        .values_list('id', flat=True)
    )

    with transaction.atomic():
        for student_id in student_ids:
            set_attendance(lesson_id, student_id, status, updated_by)

    logger.info(f"Attendance '{status}' set for {len(student_ids)} students on lesson {lesson_id}")
    return len(student_ids)


def copy_attendance_from_previous_lesson(lesson_id, updated_by=None):
    """
    Copy status and comment from the latest earlier non-canceled lesson of
    the same group. Returns ``{'copied': n}``; ``n`` is 0 when there is no
    such lesson or it has no attendance.
    """
    lesson = _get_lesson(lesson_id)
    previous = (
        Lesson.objects
        .filter(group_id=lesson.group_id, lesson_date__lt=lesson.lesson_date)
        .exclude(status=LessonStatus.CANCELED)
        .order_by('-lesson_date')
        .first()
    )
    if previous is None:
        return {'copied': 0}

    previous_records = list(
        Attendance.objects.filter(lesson=previous).values('student_id', 'status', 'comment')
    )

    copied = 0
    with transaction.atomic():
        for record in previous_records:
            set_attendance(lesson_id, record['student_id'], record['status'], updated_by, record['comment'])
            copied += 1

    logger.info(f"Copied {copied} attendance records from lesson {previous.pk} to lesson {lesson_id}")
    return {'copied': copied}


def clear_attendance_for_lesson(lesson_id) -> int:
    deleted, _ = Attendance.objects.filter(lesson_id=lesson_id).delete()
    logger.info(f"Cleared {deleted} attendance records of lesson {lesson_id}")
    return deleted


def get_attendance_for_lesson(lesson_id):
    records = (
        Attendance.objects
        .filter(lesson_id=lesson_id)
        .select_related('student')
        .order_by('student__full_name')
    )
    return [
        {
            'id': record.id,
            'lesson_id': record.lesson_id,
            'student_id': record.student_id,
            'student_name': record.student.full_name,
            'student_phone': record.student.phone,
            'status': record.status,
            'comment': record.comment,
            'makeup_lesson_id': record.makeup_lesson_id,
            'updated_by': record.updated_by_id,
            'updated_at': record.updated_at,
        }
        for record in records
    ]


def get_attendance_for_lesson_with_students(lesson_id):
    """
    Every active student of the lesson's group, with their attendance for
    this lesson or ``None`` fields when nothing is recorded yet.
    """
    lesson = _get_lesson(lesson_id)
    students = Student.objects.filter(id__in=_active_student_ids(lesson.group_id)).order_by('full_name')
    records = {record.student_id: record for record in Attendance.objects.filter(lesson=lesson)}

    rows = []
    for student in students:
        record = records.get(student.id)
        rows.append({
            'student_id': student.id,
            'student_name': student.full_name,
            'student_phone': student.phone,
            'attendance_id': record.id if record else None,
            'status': record.status if record else None,
            'comment': record.comment if record else None,
            'makeup_lesson_id': record.makeup_lesson_id if record else None,
        })
    return rows


def get_student_attendance_stats(student_id, group_id=None, start_date=None, end_date=None):
    queryset = Attendance.objects.filter(student_id=student_id)
    if group_id:
        queryset = queryset.filter(lesson__group_id=group_id)
    if start_date:
        queryset = queryset.filter(lesson__lesson_date__gte=start_date)
    if end_date:
        queryset = queryset.filter(lesson__lesson_date__lte=end_date)

    return _with_rate(queryset.aggregate(**_status_counts()))


def get_group_attendance_stats(group_id, start_date=None, end_date=None):
    """Per-student counts for the active members of a group, ordered by name."""
    lesson_filter = Q(attendance_records__lesson__group_id=group_id)
    if start_date:
        lesson_filter &= Q(attendance_records__lesson__lesson_date__gte=start_date)
    if end_date:
        lesson_filter &= Q(attendance_records__lesson__lesson_date__lte=end_date)

    annotations = {'total': Count('attendance_records', filter=lesson_filter, distinct=True)}
    for key in STATUS_KEYS:
        annotations[key] = Count(
            'attendance_records',
            filter=lesson_filter & Q(attendance_records__status=key),
            distinct=True,
        )

    students = (
        Student.objects
        .filter(id__in=_active_student_ids(group_id))
        .annotate(**annotations)
        .order_by('full_name')
    )
    return [
        _with_rate({
            'student_id': student.id,
            'student_name': student.full_name,
            'total': student.total,
            **{key: getattr(student, key) for key in STATUS_KEYS},
        })
        for student in students
    ]


def get_student_attendance_history(student_id, group_id=None, limit=50):
    queryset = (
        Attendance.objects
        .filter(student_id=student_id)
        .select_related('lesson', 'lesson__group')
        .order_by('-lesson__lesson_date')
    )
    if group_id:
        queryset = queryset.filter(lesson__group_id=group_id)
    return [
        {
            'id': record.id,
            'lesson_id': record.lesson_id,
            'lesson_date': record.lesson.lesson_date,
            'lesson_topic': record.lesson.topic,
            'group_id': record.lesson.group_id,
            'group_title': record.lesson.group.title,
            'status': record.status,
            'comment': record.comment,
        }
        for record in queryset[:limit]
    ]

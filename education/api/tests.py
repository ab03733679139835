from datetime import date, datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from education import attendance_service, group_service, history_service, schedule_service
from education.api.exceptions import (
    GroupHasDependenciesError,
    GroupNotFoundError,
    InvalidAttendanceStatusError,
    InvalidMakeupLessonError,
    LessonAlreadyCanceledError,
    LessonDateConflictError,
    LessonHasAttendanceError,
    LessonNotFoundError,
    MembershipNotFoundError,
    ScheduleValidationError,
    StudentAlreadyInGroupError,
)
from education.api.testing import create_admin, create_group, create_teacher, enroll
from education.models import (
    Attendance,
    AttendanceStatus,
    Course,
    Group,
    GroupHistory,
    GroupStatus,
    HistoryAction,
    Lesson,
    LessonStatus,
    StudentGroup,
)
from education.tasks import GENERATION_LOCK_KEY, generate_lessons_for_all_groups_task
from user.models import Student

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)


def authenticate(client, user):
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')


class LessonGenerationTestCase(TestCase):
    def setUp(self):
        self.admin = create_admin()
        _, self.teacher = create_teacher()
        self.group = create_group(self.teacher)
    
    def test_generates_weekly_lessons_from_monday(self):
        result = schedule_service.generate_lessons_for_group(self.group.pk, 3, today=MONDAY)
        
        self.assertEqual(result, {'generated': 3, 'skipped': 0})
        lessons = list(Lesson.objects.filter(group=self.group).order_by('lesson_date'))
        self.assertEqual(
            [lesson.lesson_date for lesson in lessons],
            [date(2026, 10, 20), date(2026, 10, 27), date(2026, 11, 3)]
        )
        for lesson in lessons:
            self.assertEqual(lesson.lesson_date.isoweekday(), 2)
            self.assertEqual(lesson.end_datetime - lesson.start_datetime, timedelta(minutes=90))
            self.assertEqual(lesson.status, LessonStatus.SCHEDULED)

    def test_group_without_start_date_generates_from_today(self):
        group = create_group(self.teacher, course=self.group.course, weekly_day=4, start_date=None)
        self.assertIsNone(Group.objects.get(pk=group.pk).start_date)

        result = schedule_service.generate_lessons_for_group(group.pk, 2, today=MONDAY)

        self.assertEqual(result, {'generated': 2, 'skipped': 0})
        self.assertEqual(
            list(Lesson.objects.filter(group=group).order_by('lesson_date').values_list('lesson_date', flat=True)),
            [date(2026, 10, 22), date(2026, 10, 29)]
        )

    def test_start_datetime_uses_group_timezone(self):
        schedule_service.generate_lessons_for_group(self.group.pk, 1, today=MONDAY)
        
        lesson = Lesson.objects.get(group=self.group)
        # Europe/Kyiv is UTC+3 until the last Sunday of October
        self.assertEqual(lesson.start_datetime, datetime(2026, 10, 20, 13, 0, tzinfo=dt_timezone.utc))
    
    def test_lesson_on_reference_day_is_included(self):
        result = schedule_service.generate_lessons_for_group(self.group.pk, 2, today=date(2026, 10, 20))
        
        self.assertEqual(result['generated'], 2)
        self.assertTrue(Lesson.objects.filter(group=self.group, lesson_date=date(2026, 10, 20)).exists())
    
    def test_generation_is_idempotent(self):
        schedule_service.generate_lessons_for_group(self.group.pk, 3, today=MONDAY)
        result = schedule_service.generate_lessons_for_group(self.group.pk, 4, today=MONDAY)
        
        self.assertEqual(result, {'generated': 1, 'skipped': 3})
        self.assertEqual(Lesson.objects.filter(group=self.group).count(), 4)
    
    def test_lessons_stay_inside_group_dates(self):
        self.group.start_date = date(2026, 10, 26)
        self.group.end_date = date(2026, 11, 10)
        self.group.save()
        
        result = schedule_service.generate_lessons_for_group(self.group.pk, 8, today=MONDAY)
        
        dates = list(Lesson.objects.filter(group=self.group).values_list('lesson_date', flat=True))
        self.assertEqual(result, {'generated': 3, 'skipped': 0})
        self.assertEqual(min(dates), date(2026, 10, 27))
        self.assertEqual(max(dates), date(2026, 11, 10))
    
    def test_created_by_is_recorded(self):
        schedule_service.generate_lessons_for_group(self.group.pk, 1, created_by=self.admin, today=MONDAY)
        
        self.assertEqual(Lesson.objects.get(group=self.group).created_by, self.admin)
    
    def test_invalid_weeks_ahead_rejected(self):
        for weeks_ahead in (0, -1, 'x', 1.5, True):
            with self.assertRaises(ScheduleValidationError):
                schedule_service.generate_lessons_for_group(self.group.pk, weeks_ahead, today=MONDAY)
        self.assertFalse(Lesson.objects.exists())
    
    def test_missing_group(self):
        with self.assertRaises(GroupNotFoundError):
            schedule_service.generate_lessons_for_group(999999, 3, today=MONDAY)
    
    def test_malformed_recurrence_writes_nothing(self):
        Group.objects.filter(pk=self.group.pk).update(weekly_day=9)
        
        with self.assertRaises(ScheduleValidationError):
            schedule_service.generate_lessons_for_group(self.group.pk, 3, today=MONDAY)
        self.assertFalse(Lesson.objects.exists())
    
    def test_batch_isolates_failing_group(self):
        broken = create_group(self.teacher, course=self.group.course, weekly_day=4)
        other = create_group(self.teacher, course=self.group.course, weekly_day=5)
        Group.objects.filter(pk=broken.pk).update(start_time='25:00')
        
        summary = schedule_service.generate_lessons_for_all_groups(2, today=MONDAY)
        
        self.assertEqual(summary['failed'], 1)
        self.assertEqual(summary['total_generated'], 4)
        self.assertEqual(len(summary['results']), 3)
        entries = {entry['group_id']: entry for entry in summary['results']}
        self.assertIn('start_time', entries[broken.pk]['error'])
        self.assertEqual(entries[other.pk]['generated'], 2)
        self.assertFalse(Lesson.objects.filter(group=broken).exists())
    
    def test_batch_skips_inactive_groups(self):
        archived = create_group(self.teacher, course=self.group.course, weekly_day=3, is_active=False)
        
        summary = schedule_service.generate_lessons_for_all_groups(1, today=MONDAY)
        
        self.assertEqual([entry['group_id'] for entry in summary['results']], [self.group.pk])
        self.assertFalse(Lesson.objects.filter(group=archived).exists())


class LessonLifecycleTestCase(TestCase):
    def setUp(self):
        self.admin = create_admin()
        _, self.teacher = create_teacher()
        self.group = create_group(self.teacher, duration_minutes=60)
        schedule_service.generate_lessons_for_group(self.group.pk, 2, today=MONDAY)
        self.lesson, self.next_lesson = Lesson.objects.filter(group=self.group).order_by('lesson_date')
    
    def test_cancel_lesson(self):
        schedule_service.cancel_lesson(self.lesson, actor=self.admin)
        
        self.lesson.refresh_from_db()
        self.assertEqual(self.lesson.status, LessonStatus.CANCELED)
        self.assertEqual(self.lesson.topic, schedule_service.CANCELED_TOPIC)
        with self.assertRaises(LessonAlreadyCanceledError):
            schedule_service.cancel_lesson(self.lesson, actor=self.admin)
    
    def test_reschedule_uses_default_duration(self):
        schedule_service.cancel_lesson(self.lesson, reason='Свято')
        schedule_service.reschedule_lesson(self.lesson, date(2026, 10, 22), new_time='10:00')
        
        self.lesson.refresh_from_db()
        self.assertEqual(self.lesson.lesson_date, date(2026, 10, 22))
        self.assertEqual(self.lesson.status, LessonStatus.SCHEDULED)
        self.assertEqual(self.lesson.duration_minutes, 90)
    
    def test_reschedule_can_keep_group_duration(self):
        schedule_service.reschedule_lesson(self.lesson, date(2026, 10, 22), keep_duration=True)
        
        self.lesson.refresh_from_db()
        self.assertEqual(self.lesson.duration_minutes, 60)
    
    def test_reschedule_onto_taken_date(self):
        with self.assertRaises(LessonDateConflictError):
            schedule_service.reschedule_lesson(self.lesson, self.next_lesson.lesson_date)
    
    def test_mark_done_logs_once(self):
        schedule_service.mark_lesson_done(self.lesson, actor=self.admin, topic='Датчики')
        schedule_service.mark_lesson_done(self.lesson, actor=self.admin)
        
        entries = GroupHistory.objects.filter(group=self.group, action_type=HistoryAction.LESSON_CONDUCTED)
        self.assertEqual(entries.count(), 1)
        self.assertEqual(entries.get().action_description, 'Проведено заняття: 2026-10-20 (Датчики)')
        self.assertEqual(entries.get().user_name, 'Анна Адміністратор')
    
    def test_delete_lesson_with_attendance_refused(self):
        student, = enroll(self.group, 'Марко')
        Attendance.objects.create(lesson=self.lesson, student=student, status=AttendanceStatus.PRESENT)
        
        with self.assertRaises(LessonHasAttendanceError):
            schedule_service.delete_lesson(self.lesson)
        self.assertTrue(Lesson.objects.filter(pk=self.lesson.pk).exists())
        
        schedule_service.delete_lesson(self.next_lesson)
        self.assertFalse(Lesson.objects.filter(pk=self.next_lesson.pk).exists())
    
    def test_upcoming_lessons_skip_canceled(self):
        schedule_service.cancel_lesson(self.lesson)
        
        upcoming = schedule_service.get_upcoming_lessons(today=MONDAY)
        self.assertEqual(upcoming, [self.next_lesson])


class LessonGenerationTaskTestCase(TestCase):
    def setUp(self):
        _, teacher = create_teacher()
        self.group = create_group(teacher)
        cache.delete(GENERATION_LOCK_KEY)
    
    def test_task_runs_batch_and_releases_lock(self):
        summary = generate_lessons_for_all_groups_task.apply(kwargs={'weeks_ahead': 2}).get()
        
        self.assertEqual(summary['failed'], 0)
        self.assertEqual(summary['total_generated'], 2)
        self.assertIsNone(cache.get(GENERATION_LOCK_KEY))
    
    def test_task_skips_when_locked(self):
        cache.add(GENERATION_LOCK_KEY, 'other-worker')
        try:
            with patch('education.tasks.generate_lessons_for_all_groups') as batch:
                result = generate_lessons_for_all_groups_task.apply().get()
        finally:
            cache.delete(GENERATION_LOCK_KEY)
        
        self.assertEqual(result, {'skipped': True})
        batch.assert_not_called()


class AttendanceLedgerTestCase(TestCase):
    def setUp(self):
        self.admin = create_admin()
        _, self.teacher = create_teacher()
        self.group = create_group(self.teacher)
        self.students = enroll(self.group, 'Богдан', 'Аліна', 'Віктор')
        schedule_service.generate_lessons_for_group(self.group.pk, 3, today=MONDAY)
        self.lessons = list(Lesson.objects.filter(group=self.group).order_by('lesson_date'))
    
    def test_set_attendance_upserts(self):
        lesson, student = self.lessons[0], self.students[0]
        
        first_id = attendance_service.set_attendance(lesson.pk, student.pk, AttendanceStatus.ABSENT, self.admin)
        second_id = attendance_service.set_attendance(
            lesson.pk, student.pk, AttendanceStatus.PRESENT, self.admin, comment='Запізнився'
        )
        
        self.assertEqual(first_id, second_id)
        record = Attendance.objects.get(lesson=lesson, student=student)
        self.assertEqual(record.status, AttendanceStatus.PRESENT)
        self.assertEqual(record.comment, 'Запізнився')
        self.assertEqual(record.updated_by, self.admin)
    
    def test_invalid_status_rejected(self):
        with self.assertRaises(InvalidAttendanceStatusError):
            attendance_service.set_attendance(self.lessons[0].pk, self.students[0].pk, 'late')
        self.assertFalse(Attendance.objects.exists())
    
    def test_cross_group_makeup_lesson_is_accepted(self):
        other_group = create_group(self.teacher, course=self.group.course, weekly_day=4)
        schedule_service.generate_lessons_for_group(other_group.pk, 1, today=MONDAY)
        makeup = Lesson.objects.get(group=other_group)
        
        with self.assertLogs('education.attendance_service', level='WARNING'):
            attendance_service.set_attendance(
                self.lessons[0].pk,
                self.students[0].pk,
                AttendanceStatus.MAKEUP_PLANNED,
                makeup_lesson_id=makeup.pk,
            )
        self.assertEqual(Attendance.objects.get().makeup_lesson, makeup)

    def test_unknown_makeup_lesson_rejected(self):
        with self.assertRaises(InvalidMakeupLessonError):
            attendance_service.set_attendance(
                self.lessons[0].pk,
                self.students[0].pk,
                AttendanceStatus.MAKEUP_PLANNED,
                makeup_lesson_id=999999,
            )
        self.assertFalse(Attendance.objects.exists())
    
    def test_set_attendance_for_all_marks_active_members(self):
        membership = StudentGroup.objects.get(group=self.group, student=self.students[2])
        membership.is_active = False
        membership.save()
        
        updated = attendance_service.set_attendance_for_all(self.lessons[0].pk, AttendanceStatus.PRESENT, self.admin)
        
        self.assertEqual(updated, 2)
        self.assertEqual(
            set(Attendance.objects.values_list('student_id', flat=True)),
            {self.students[0].pk, self.students[1].pk}
        )
    
    def test_set_attendance_for_all_is_all_or_nothing(self):
        real_set_attendance = attendance_service.set_attendance
        calls = []
        
        def fail_on_third(*args, **kwargs):
            calls.append(args)
            if len(calls) == 3:
                raise RuntimeError('store failure')
            return real_set_attendance(*args, **kwargs)
        
        with patch('education.attendance_service.set_attendance', side_effect=fail_on_third):
            with self.assertRaises(RuntimeError):
                attendance_service.set_attendance_for_all(self.lessons[0].pk, AttendanceStatus.PRESENT)
        
        self.assertEqual(len(calls), 3)
        self.assertEqual(Attendance.objects.count(), 0)
    
    def test_set_attendance_for_all_unknown_lesson(self):
        with self.assertRaises(LessonNotFoundError):
            attendance_service.set_attendance_for_all(999999, AttendanceStatus.PRESENT)
    
    def test_copy_from_previous_lesson(self):
        first, second = self.lessons[0], self.lessons[1]
        attendance_service.set_attendance(first.pk, self.students[0].pk, AttendanceStatus.PRESENT)
        attendance_service.set_attendance(first.pk, self.students[1].pk, AttendanceStatus.ABSENT, comment='Хворіє')
        
        result = attendance_service.copy_attendance_from_previous_lesson(second.pk, self.admin)
        
        self.assertEqual(result, {'copied': 2})
        copied = Attendance.objects.get(lesson=second, student=self.students[1])
        self.assertEqual(copied.status, AttendanceStatus.ABSENT)
        self.assertEqual(copied.comment, 'Хворіє')
    
    def test_copy_skips_canceled_previous_lesson(self):
        first, second, third = self.lessons
        attendance_service.set_attendance(first.pk, self.students[0].pk, AttendanceStatus.ABSENT)
        schedule_service.cancel_lesson(second)
        
        result = attendance_service.copy_attendance_from_previous_lesson(third.pk)
        
        self.assertEqual(result, {'copied': 1})
        self.assertEqual(Attendance.objects.get(lesson=third).status, AttendanceStatus.ABSENT)
    
    def test_copy_without_previous_lesson_is_noop(self):
        result = attendance_service.copy_attendance_from_previous_lesson(self.lessons[0].pk)
        
        self.assertEqual(result, {'copied': 0})
        self.assertFalse(Attendance.objects.exists())
    
    def test_clear_attendance(self):
        attendance_service.set_attendance_for_all(self.lessons[0].pk, AttendanceStatus.PRESENT)
        attendance_service.set_attendance(self.lessons[1].pk, self.students[0].pk, AttendanceStatus.PRESENT)
        
        self.assertEqual(attendance_service.clear_attendance_for_lesson(self.lessons[0].pk), 3)
        self.assertEqual(Attendance.objects.count(), 1)
    
    def test_lesson_roster_includes_unmarked_students(self):
        attendance_service.set_attendance(self.lessons[0].pk, self.students[0].pk, AttendanceStatus.PRESENT)
        
        rows = attendance_service.get_attendance_for_lesson_with_students(self.lessons[0].pk)
        
        self.assertEqual([row['student_name'] for row in rows], ['Аліна', 'Богдан', 'Віктор'])
        by_name = {row['student_name']: row for row in rows}
        self.assertEqual(by_name['Богдан']['status'], AttendanceStatus.PRESENT)
        self.assertIsNone(by_name['Аліна']['status'])
        self.assertIsNone(by_name['Аліна']['attendance_id'])


class AttendanceStatisticsTestCase(TestCase):
    def setUp(self):
        _, teacher = create_teacher()
        self.group = create_group(teacher)
        self.student, self.newcomer = enroll(self.group, 'Дарина', 'Ярослав')
        schedule_service.generate_lessons_for_group(self.group.pk, 3, today=MONDAY)
        self.lessons = list(Lesson.objects.filter(group=self.group).order_by('lesson_date'))
        statuses = [AttendanceStatus.PRESENT, AttendanceStatus.ABSENT, AttendanceStatus.MAKEUP_DONE]
        for lesson, mark in zip(self.lessons, statuses):
            attendance_service.set_attendance(lesson.pk, self.student.pk, mark)
    
    def test_attendance_rate_rounding(self):
        self.assertEqual(attendance_service.calculate_attendance_rate(0, 0), 0)
        self.assertEqual(attendance_service.calculate_attendance_rate(1, 3), 33)
        self.assertEqual(attendance_service.calculate_attendance_rate(2, 3), 67)
        self.assertEqual(attendance_service.calculate_attendance_rate(1, 8), 13)
        self.assertEqual(attendance_service.calculate_attendance_rate(4, 4), 100)
    
    def test_student_stats(self):
        stats = attendance_service.get_student_attendance_stats(self.student.pk)
        
        self.assertEqual(stats['total'], 3)
        self.assertEqual(stats['present'], 1)
        self.assertEqual(stats['absent'], 1)
        self.assertEqual(stats['makeup_planned'], 0)
        self.assertEqual(stats['makeup_done'], 1)
        self.assertEqual(stats['attendance_rate'], 33)
    
    def test_student_stats_date_range(self):
        stats = attendance_service.get_student_attendance_stats(
            self.student.pk, start_date=self.lessons[1].lesson_date
        )
        
        self.assertEqual(stats['total'], 2)
        self.assertEqual(stats['present'], 0)
        self.assertEqual(stats['attendance_rate'], 0)
    
    def test_student_without_records(self):
        stats = attendance_service.get_student_attendance_stats(self.newcomer.pk)
        
        self.assertEqual(stats['total'], 0)
        self.assertEqual(stats['attendance_rate'], 0)
    
    def test_group_stats_include_every_active_member(self):
        rows = attendance_service.get_group_attendance_stats(self.group.pk)
        
        self.assertEqual([row['student_name'] for row in rows], ['Дарина', 'Ярослав'])
        self.assertEqual(rows[0]['total'], 3)
        self.assertEqual(rows[0]['present'], 1)
        self.assertEqual(rows[1]['total'], 0)
        self.assertEqual(rows[1]['attendance_rate'], 0)
    
    def test_student_history_newest_first(self):
        history = attendance_service.get_student_attendance_history(self.student.pk, limit=2)
        
        self.assertEqual(
            [row['lesson_date'] for row in history],
            [self.lessons[2].lesson_date, self.lessons[1].lesson_date]
        )


class GroupHistoryLogTestCase(TestCase):
    def setUp(self):
        self.admin = create_admin()
        _, teacher = create_teacher()
        self.group = create_group(teacher)
    
    def test_entries_are_appended_newest_first(self):
        for index in range(5):
            history_service.add_group_history_entry(
                self.group.pk, HistoryAction.EDITED, f'Зміна {index}', user_name='Тест'
            )
        
        entries = history_service.get_group_history(self.group.pk)
        self.assertEqual(len(entries), 5)
        self.assertEqual(entries[0].action_description, 'Зміна 4')
        self.assertEqual(
            [entry.action_description for entry in history_service.get_recent_group_history(self.group.pk)],
            ['Зміна 4', 'Зміна 3', 'Зміна 2', 'Зміна 1']
        )
    
    def test_identical_events_are_not_deduplicated(self):
        history_service.add_group_history_entry(self.group.pk, HistoryAction.EDITED, 'Те саме')
        history_service.add_group_history_entry(self.group.pk, HistoryAction.EDITED, 'Те саме')
        
        self.assertEqual(GroupHistory.objects.filter(group=self.group).count(), 2)
    
    def test_missing_actor_is_recorded_as_system(self):
        entry_id = history_service.add_group_history_entry(self.group.pk, HistoryAction.EDITED, 'Автоматично')
        
        entry = GroupHistory.objects.get(pk=entry_id)
        self.assertEqual(entry.user_name, history_service.SYSTEM_ACTOR_NAME)
        self.assertIsNone(entry.user)
    
    def test_unknown_action_rejected(self):
        with self.assertRaises(ValueError):
            history_service.add_group_history_entry(self.group.pk, 'renamed', 'Назву змінено')
    
    def test_entries_are_immutable(self):
        entry = GroupHistory.objects.get(
            pk=history_service.add_group_history_entry(self.group.pk, HistoryAction.EDITED, 'Початково')
        )
        
        entry.action_description = 'Переписано'
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()
        self.assertEqual(GroupHistory.objects.get(pk=entry.pk).action_description, 'Початково')
    
    def test_record_group_change_rolls_back_with_mutation(self):
        def failing_mutation():
            self.group.note = 'Нова нотатка'
            self.group.save()
            raise RuntimeError('store failure')
        
        with self.assertRaises(RuntimeError):
            history_service.record_group_change(
                self.group, self.admin, HistoryAction.EDITED, 'Нотатка', failing_mutation
            )
        
        self.group.refresh_from_db()
        self.assertIsNone(self.group.note)
        self.assertFalse(GroupHistory.objects.filter(group=self.group, action_type=HistoryAction.EDITED).exists())
    
    def test_record_group_change_captures_actor_name(self):
        history_service.record_group_change(
            self.group, self.admin, HistoryAction.EDITED, lambda result: f'Результат {result}', lambda: 42
        )
        
        entry = GroupHistory.objects.filter(group=self.group, action_type=HistoryAction.EDITED).get()
        self.assertEqual(entry.action_description, 'Результат 42')
        self.assertEqual(entry.user, self.admin)
        self.assertEqual(entry.user_name, 'Анна Адміністратор')


class HistoryFormattersTestCase(TestCase):
    def test_student_descriptions(self):
        self.assertEqual(history_service.format_student_added_description('Іван'), 'Додано учня: Іван')
        self.assertEqual(history_service.format_student_removed_description('Іван'), 'Видалено учня: Іван')
    
    def test_teacher_changed(self):
        self.assertEqual(
            history_service.format_teacher_changed_description('Олена', 'Петро'),
            'Змінено викладача: Олена → Петро'
        )
    
    def test_status_changed_uses_labels(self):
        self.assertEqual(
            history_service.format_status_changed_description('active', 'graduate'),
            'Змінено статус: Активна → Випуск'
        )
        self.assertEqual(
            history_service.format_status_changed_description('active', 'paused'),
            'Змінено статус: Активна → paused'
        )
    
    def test_field_edited(self):
        self.assertEqual(
            history_service.format_field_edited_description('capacity', None, 12),
            'Змінено Місць: (порожньо) → 12'
        )
        self.assertEqual(
            history_service.format_field_edited_description('room', 'A', ''),
            'Змінено room: A → (порожньо)'
        )
    
    def test_lesson_conducted(self):
        self.assertEqual(
            history_service.format_lesson_conducted_description('2026-10-20'),
            'Проведено заняття: 2026-10-20'
        )


class GroupServiceTestCase(TestCase):
    def setUp(self):
        self.admin = create_admin()
        _, self.teacher = create_teacher()
        _, self.other_teacher = create_teacher(email='petro@test.com', full_name='Петро Бондар')
        self.course = Course.objects.create(title='Робототехніка')
        self.group = group_service.create_group({
            'course': self.course,
            'teacher': self.teacher,
            'weekly_day': 2,
            'start_time': '16:00',
            'start_date': date(2026, 9, 1),
        }, actor=self.admin)
        self.student = Student.objects.create(full_name='Іван Петренко')
    
    def actions(self):
        return list(
            GroupHistory.objects.filter(group=self.group).order_by('id').values_list('action_type', flat=True)
        )
    
    def test_create_generates_title_and_logs(self):
        self.assertEqual(self.group.title, 'Вт 16:00 Робототехніка')
        self.assertTrue(self.group.public_id.startswith('GRP-'))
        entry = GroupHistory.objects.get(group=self.group)
        self.assertEqual(entry.action_type, HistoryAction.CREATED)
        self.assertEqual(entry.action_description, 'Створено групу: Вт 16:00 Робототехніка')
    
    def test_update_writes_entry_per_changed_field(self):
        group_service.update_group(self.group, {
            'teacher': self.other_teacher,
            'weekly_day': 4,
            'capacity': 10,
            'start_time': '16:00',
        }, actor=self.admin)
        
        self.group.refresh_from_db()
        self.assertEqual(self.group.title, 'Чт 16:00 Робототехніка')
        self.assertEqual(
            self.actions(),
            [HistoryAction.CREATED, HistoryAction.TEACHER_CHANGED, HistoryAction.EDITED, HistoryAction.EDITED]
        )
        descriptions = set(
            GroupHistory.objects.filter(group=self.group, action_type=HistoryAction.EDITED)
            .values_list('action_description', flat=True)
        )
        self.assertEqual(descriptions, {'Змінено День тижня: Вт → Чт', 'Змінено Місць: (порожньо) → 10'})
    
    def test_update_rejects_unknown_fields(self):
        with self.assertRaises(ValueError):
            group_service.update_group(self.group, {'public_id': 'GRP-HACKED'})
    
    def test_status_change(self):
        group_service.update_group_status(self.group, GroupStatus.GRADUATE, actor=self.admin)
        group_service.update_group_status(self.group, GroupStatus.GRADUATE, actor=self.admin)
        
        entry = GroupHistory.objects.get(group=self.group, action_type=HistoryAction.STATUS_CHANGED)
        self.assertEqual(entry.action_description, 'Змінено статус: Активна → Випуск')
        self.assertEqual(entry.old_value, 'active')
        self.assertEqual(entry.new_value, 'graduate')
    
    def test_archive_and_restore(self):
        group_service.set_group_active(self.group, False, actor=self.admin)
        self.assertFalse(Group.objects.get(pk=self.group.pk).is_active)
        
        group_service.set_group_active(self.group, True, actor=self.admin)
        self.assertTrue(Group.objects.get(pk=self.group.pk).is_active)
        self.assertEqual(self.actions(), [HistoryAction.CREATED, HistoryAction.EDITED, HistoryAction.EDITED])
    
    def test_add_and_remove_student(self):
        group_service.add_student_to_group(self.group, self.student, actor=self.admin)
        with self.assertRaises(StudentAlreadyInGroupError):
            group_service.add_student_to_group(self.group, self.student, actor=self.admin)
        
        membership = group_service.remove_student_from_group(self.group, self.student, actor=self.admin)
        self.assertFalse(membership.is_active)
        self.assertEqual(membership.leave_date, timezone.localdate())
        with self.assertRaises(MembershipNotFoundError):
            group_service.remove_student_from_group(self.group, self.student, actor=self.admin)
        
        self.assertEqual(
            self.actions(),
            [HistoryAction.CREATED, HistoryAction.STUDENT_ADDED, HistoryAction.STUDENT_REMOVED]
        )
        self.assertEqual(
            GroupHistory.objects.get(action_type=HistoryAction.STUDENT_ADDED).action_description,
            'Додано учня: Іван Петренко'
        )
    
    def test_rejoin_on_same_day_reactivates_membership(self):
        group_service.add_student_to_group(self.group, self.student)
        group_service.remove_student_from_group(self.group, self.student)
        group_service.add_student_to_group(self.group, self.student)
        
        membership = StudentGroup.objects.get(group=self.group, student=self.student)
        self.assertTrue(membership.is_active)
        self.assertIsNone(membership.leave_date)
    
    def test_delete_refused_while_group_has_dependencies(self):
        group_service.add_student_to_group(self.group, self.student)
        
        self.assertEqual(group_service.group_dependencies(self.group), {'students': 1, 'lessons': 0, 'payments': 0})
        with self.assertRaises(GroupHasDependenciesError):
            group_service.delete_group(self.group)
        self.assertTrue(Group.objects.filter(pk=self.group.pk).exists())
    
    def test_delete_refused_with_lessons(self):
        schedule_service.generate_lessons_for_group(self.group.pk, 1)
        
        with self.assertRaises(GroupHasDependenciesError):
            group_service.delete_group(self.group)
    
    def test_delete_empty_group(self):
        group_service.delete_group(self.group)
        
        self.assertFalse(Group.objects.filter(pk=self.group.pk).exists())


class CourseAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = create_admin()
        self.teacher_user, self.teacher = create_teacher()
        self.course = Course.objects.create(title='Робототехніка')
    
    def test_list_courses_requires_authentication(self):
        response = self.client.get(reverse('education_api:course-list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
    
    def test_list_courses_with_counts(self):
        group = create_group(self.teacher, course=self.course)
        enroll(group, 'Іван', 'Марія')
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('education_api:course-list'))
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        course = response.data['results'][0]
        self.assertEqual(course['groups_count'], 1)
        self.assertEqual(course['students_count'], 2)
    
    def test_create_course(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('education_api:course-list'),
            {'title': 'Програмування', 'duration_months': 9},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertTrue(response.data['data']['public_id'].startswith('CRS-'))
    
    def test_teacher_cannot_create_course(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.post(reverse('education_api:course-list'), {'title': 'Шахи'}, format='json')
        
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
    
    def test_renaming_course_updates_group_titles(self):
        group = create_group(self.teacher, course=self.course)
        authenticate(self.client, self.admin)
        
        response = self.client.patch(
            reverse('education_api:course-detail', kwargs={'pk': self.course.pk}),
            {'title': 'Lego'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        group.refresh_from_db()
        self.assertEqual(group.title, 'Вт 16:00 Lego')
    
    def test_archive_and_restore_course(self):
        authenticate(self.client, self.admin)
        
        self.client.post(reverse('education_api:course-archive', kwargs={'pk': self.course.pk}))
        self.course.refresh_from_db()
        self.assertFalse(self.course.is_active)
        
        self.client.post(reverse('education_api:course-restore', kwargs={'pk': self.course.pk}))
        self.course.refresh_from_db()
        self.assertTrue(self.course.is_active)
    
    def test_delete_course_removes_its_groups(self):
        group = create_group(self.teacher, course=self.course)
        authenticate(self.client, self.admin)
        
        response = self.client.delete(reverse('education_api:course-detail', kwargs={'pk': self.course.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Course.objects.filter(pk=self.course.pk).exists())
        self.assertFalse(Group.objects.filter(pk=group.pk).exists())


class GroupAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = create_admin()
        self.teacher_user, self.teacher = create_teacher()
        self.other_user, self.other_teacher = create_teacher(email='petro@test.com', full_name='Петро Бондар')
        self.course = Course.objects.create(title='Робототехніка')
        self.group = create_group(self.teacher, course=self.course)
        self.foreign_group = create_group(self.other_teacher, course=self.course, weekly_day=5)
    
    def test_create_group(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(reverse('education_api:group-list'), {
            'course': self.course.pk,
            'teacher': self.teacher.pk,
            'weekly_day': 6,
            'start_time': '10:30',
            'start_date': '2026-09-01',
            'monthly_price': 1800,
        }, format='json')
        
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['title'], 'Сб 10:30 Робототехніка')
        group = Group.objects.get(pk=response.data['data']['id'])
        self.assertTrue(GroupHistory.objects.filter(group=group, action_type=HistoryAction.CREATED).exists())
    
    def test_create_group_validation(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(reverse('education_api:group-list'), {
            'course': self.course.pk,
            'teacher': self.teacher.pk,
            'weekly_day': 8,
            'start_time': '25:00',
            'start_date': '2026-09-01',
        }, format='json')
        
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('weekly_day', response.data)
        self.assertIn('start_time', response.data)

    def test_create_group_without_start_date(self):
        authenticate(self.client, self.admin)

        response = self.client.post(reverse('education_api:group-list'), {
            'course': self.course.pk,
            'teacher': self.teacher.pk,
            'weekly_day': 3,
            'start_time': '17:00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['data']['start_date'])
        group_id = response.data['data']['id']

        response = self.client.post(
            reverse('education_api:group-generate-lessons', kwargs={'pk': group_id}),
            {'weeks_ahead': 3},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['generated'], 3)
        lesson_dates = list(Lesson.objects.filter(group_id=group_id).values_list('lesson_date', flat=True))
        self.assertTrue(all(lesson_date >= timezone.localdate() for lesson_date in lesson_dates))
        self.assertTrue(all(lesson_date.isoweekday() == 3 for lesson_date in lesson_dates))

    def test_malformed_id_filters_rejected(self):
        authenticate(self.client, self.admin)

        response = self.client.get(reverse('education_api:group-list'), {'course': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('course', response.data)

        response = self.client.get(reverse('education_api:group-list'), {'teacher': '1x'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_teacher_sees_only_own_groups(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(reverse('education_api:group-list'))
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([group['id'] for group in response.data['results']], [self.group.pk])
        
        response = self.client.get(reverse('education_api:group-detail', kwargs={'pk': self.foreign_group.pk}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
    
    def test_filter_groups_by_days(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('education_api:group-list'), {'days': '5,6'})
        
        self.assertEqual([group['id'] for group in response.data['results']], [self.foreign_group.pk])
    
    def test_update_group_logs_changes(self):
        authenticate(self.client, self.admin)
        
        response = self.client.patch(
            reverse('education_api:group-detail', kwargs={'pk': self.group.pk}),
            {'teacher': self.other_teacher.pk, 'capacity': 8},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['teacher_name'], 'Петро Бондар')
        actions = set(GroupHistory.objects.filter(group=self.group).values_list('action_type', flat=True))
        self.assertEqual(actions, {HistoryAction.TEACHER_CHANGED, HistoryAction.EDITED})
    
    def test_delete_group_with_students_conflicts(self):
        enroll(self.group, 'Іван')
        authenticate(self.client, self.admin)
        
        response = self.client.delete(reverse('education_api:group-detail', kwargs={'pk': self.group.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Group.objects.filter(pk=self.group.pk).exists())
        
        response = self.client.get(reverse('education_api:group-dependencies', kwargs={'pk': self.group.pk}))
        self.assertEqual(response.data['data']['students'], 1)
    
    def test_add_and_remove_student(self):
        student, = enroll(self.foreign_group, 'Марія')
        authenticate(self.client, self.admin)
        url = reverse('education_api:group-students', kwargs={'pk': self.group.pk})
        
        response = self.client.post(url, {'student_id': student.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        
        response = self.client.post(url, {'student_id': student.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        
        response = self.client.get(url)
        self.assertEqual([row['full_name'] for row in response.data['data']], ['Марія'])
        
        response = self.client.delete(
            reverse('education_api:group-student-remove', kwargs={'pk': self.group.pk, 'student_id': student.pk})
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['data']['is_active'])
        
        response = self.client.get(reverse('education_api:group-history', kwargs={'pk': self.group.pk}))
        self.assertEqual(
            [entry['action_type'] for entry in response.data['data']],
            [HistoryAction.STUDENT_REMOVED, HistoryAction.STUDENT_ADDED]
        )
    
    def test_status_change(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('education_api:group-status', kwargs={'pk': self.group.pk}),
            {'status': 'graduate'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], 'graduate')


class LessonAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = create_admin()
        self.teacher_user, self.teacher = create_teacher()
        self.other_user, _ = create_teacher(email='petro@test.com', full_name='Петро Бондар')
        self.group = create_group(self.teacher)
        self.students = enroll(self.group, 'Аліна', 'Богдан')
        schedule_service.generate_lessons_for_group(self.group.pk, 2, today=MONDAY)
        self.lesson, self.next_lesson = Lesson.objects.filter(group=self.group).order_by('lesson_date')
    
    def test_generate_lessons(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('education_api:group-generate-lessons', kwargs={'pk': self.group.pk}),
            {'weeks_ahead': 4},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['generated'] + response.data['data']['skipped'], 4)
    
    def test_generate_lessons_invalid_weeks(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('education_api:group-generate-lessons', kwargs={'pk': self.group.pk}),
            {'weeks_ahead': 0},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_generate_all_requires_admin(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.post(reverse('education_api:schedule-generate-all'), {}, format='json')
        
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
    
    def test_group_lessons(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(reverse('education_api:group-lessons', kwargs={'pk': self.group.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 2)
        self.assertEqual(response.data['data'][0]['duration_minutes'], 90)
    
    def test_schedule_range(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(
            reverse('education_api:schedule'),
            {'start_date': '2026-10-19', 'end_date': '2026-10-25'}
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([lesson['id'] for lesson in response.data['data']], [self.lesson.pk])

    def test_schedule_rejects_malformed_filters(self):
        authenticate(self.client, self.admin)

        for name in ('group', 'teacher', 'course'):
            response = self.client.get(reverse('education_api:schedule'), {name: 'abc'})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, name)
            self.assertIn(name, response.data)

        response = self.client.get(
            reverse('education_api:student-attendance', kwargs={'pk': self.students[0].pk}), {'group': 'abc'}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_lesson_done(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.patch(
            reverse('education_api:lesson-detail', kwargs={'pk': self.lesson.pk}),
            {'status': 'done', 'topic': 'Мотори'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.lesson.refresh_from_db()
        self.assertEqual(self.lesson.status, LessonStatus.DONE)
        self.assertEqual(self.lesson.topic, 'Мотори')
        self.assertTrue(
            GroupHistory.objects.filter(group=self.group, action_type=HistoryAction.LESSON_CONDUCTED).exists()
        )
    
    def test_other_teacher_cannot_touch_lesson(self):
        authenticate(self.client, self.other_user)
        
        response = self.client.get(reverse('education_api:lesson-detail', kwargs={'pk': self.lesson.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
    
    def test_cancel_and_reschedule(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('education_api:lesson-cancel', kwargs={'pk': self.lesson.pk}),
            {'reason': 'Карантин'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], LessonStatus.CANCELED)
        
        response = self.client.post(
            reverse('education_api:lesson-reschedule', kwargs={'pk': self.lesson.pk}),
            {'new_date': self.next_lesson.lesson_date.isoformat()},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        
        response = self.client.post(
            reverse('education_api:lesson-reschedule', kwargs={'pk': self.lesson.pk}),
            {'new_date': '2026-10-23', 'new_time': '11:00'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['lesson_date'], '2026-10-23')
        self.assertEqual(response.data['data']['status'], LessonStatus.SCHEDULED)
    
    def test_delete_lesson_with_attendance_conflicts(self):
        Attendance.objects.create(lesson=self.lesson, student=self.students[0], status=AttendanceStatus.PRESENT)
        authenticate(self.client, self.admin)
        
        response = self.client.delete(reverse('education_api:lesson-detail', kwargs={'pk': self.lesson.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Lesson.objects.filter(pk=self.lesson.pk).exists())
    
    def test_mark_attendance(self):
        authenticate(self.client, self.teacher_user)
        url = reverse('education_api:lesson-attendance', kwargs={'pk': self.lesson.pk})
        
        response = self.client.post(url, {'student_id': self.students[0].pk, 'status': 'absent'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        
        response = self.client.post(url, {'student_id': self.students[0].pk, 'status': 'late'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            url,
            {'student_id': self.students[0].pk, 'status': 'makeup_planned', 'makeup_lesson_id': 999999},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('makeup_lesson_id', response.data)

        response = self.client.get(url)
        rows = {row['student_name']: row for row in response.data['data']}
        self.assertEqual(rows['Аліна']['status'], 'absent')
        self.assertIsNone(rows['Богдан']['status'])
        self.assertEqual(Attendance.objects.get().updated_by, self.teacher_user)
    
    def test_bulk_copy_and_clear_attendance(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.post(
            reverse('education_api:lesson-attendance-all', kwargs={'pk': self.lesson.pk}),
            {'status': 'present'},
            format='json'
        )
        self.assertEqual(response.data['data'], {'updated': 2})
        
        response = self.client.post(
            reverse('education_api:lesson-attendance-copy', kwargs={'pk': self.next_lesson.pk})
        )
        self.assertEqual(response.data['data'], {'copied': 2})
        
        response = self.client.delete(reverse('education_api:lesson-attendance', kwargs={'pk': self.lesson.pk}))
        self.assertEqual(response.data['data'], {'deleted': 2})
        self.assertEqual(Attendance.objects.count(), 2)
    
    def test_attendance_statistics(self):
        Attendance.objects.create(lesson=self.lesson, student=self.students[0], status=AttendanceStatus.PRESENT)
        Attendance.objects.create(lesson=self.next_lesson, student=self.students[0], status=AttendanceStatus.ABSENT)
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('education_api:group-attendance-stats', kwargs={'pk': self.group.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data'][0]['attendance_rate'], 50)
        self.assertEqual(response.data['data'][1]['total'], 0)
        
        response = self.client.get(reverse('education_api:student-attendance', kwargs={'pk': self.students[0].pk}))
        self.assertEqual(response.data['data']['stats']['total'], 2)
        self.assertEqual(len(response.data['data']['history']), 2)

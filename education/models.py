from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from user.models import BaseModel, Role


DAY_SHORT_NAMES = {
    1: 'Пн',
    2: 'Вт',
    3: 'Ср',
    4: 'Чт',
    5: 'Пт',
    6: 'Сб',
    7: 'Нд',
}

start_time_validator = RegexValidator(
    regex=r'^([01]\d|2[0-3]):[0-5]\d$',
    message='Некоректний формат часу. Використовуйте ГГ:ХХ'
)


def validate_timezone_name(value):
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f'Невідомий часовий пояс: {value}')


def default_group_timezone():
    return getattr(settings, 'DEFAULT_GROUP_TIMEZONE', 'Europe/Kyiv')


def default_lesson_duration():
    return getattr(settings, 'DEFAULT_LESSON_DURATION_MINUTES', 90)


def today():
    return timezone.localdate()


def build_group_title(weekly_day, start_time, course_title) -> str:
    """Format a group title such as ``"Вт 16:00 Робототехніка"``."""
    day_name = DAY_SHORT_NAMES.get(weekly_day, str(weekly_day))
    return f"{day_name} {start_time} {course_title}".strip()


class GroupStatus(models.TextChoices):
    ACTIVE = ('active', 'Активна')
    GRADUATE = ('graduate', 'Випуск')
    INACTIVE = ('inactive', 'Неактивна')


class LessonStatus(models.TextChoices):
    SCHEDULED = ('scheduled', 'Заплановано')
    DONE = ('done', 'Проведено')
    CANCELED = ('canceled', 'Скасовано')


class AttendanceStatus(models.TextChoices):
    PRESENT = ('present', 'Присутній')
    ABSENT = ('absent', 'Відсутній')
    MAKEUP_PLANNED = ('makeup_planned', 'Відпрацювання заплановано')
    MAKEUP_DONE = ('makeup_done', 'Відпрацьовано')


class HistoryAction(models.TextChoices):
    CREATED = ('created', 'Створено')
    EDITED = ('edited', 'Змінено')
    TEACHER_CHANGED = ('teacher_changed', 'Змінено викладача')
    STUDENT_ADDED = ('student_added', 'Додано учня')
    STUDENT_REMOVED = ('student_removed', 'Видалено учня')
    LESSON_CONDUCTED = ('lesson_conducted', 'Проведено заняття')
    STATUS_CHANGED = ('status_changed', 'Змінено статус')
    DELETED = ('deleted', 'Видалено')


class Course(BaseModel):
    public_id = models.CharField(max_length=20, unique=True, editable=False, verbose_name='Public ID')
    title = models.CharField(max_length=255, verbose_name='Title')
    description = models.TextField(null=True, blank=True, verbose_name='Description')
    age_min = models.PositiveSmallIntegerField(default=6, verbose_name='Minimum Age')  # type: ignore
    duration_months = models.PositiveSmallIntegerField(
        default=1,  # type: ignore
        validators=[MinValueValidator(1)],
        verbose_name='Duration (months)'
    )
    program = models.TextField(null=True, blank=True, verbose_name='Program')
    is_active = models.BooleanField(default=True, verbose_name='Is Active')  # type: ignore

    class Meta:  # type: ignore
        db_table = 'courses'
        verbose_name = 'Course'
        verbose_name_plural = 'Courses'
        ordering = ['title']

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.public_id:
            from user.api.utils import generate_unique_public_id
            self.public_id = generate_unique_public_id(
                'course', lambda value: not Course.objects.filter(public_id=value).exists()
            )
        self.full_clean()
        super().save(*args, **kwargs)


class Group(BaseModel):
    """
    A class of students meeting once a week.

    The recurrence rule is ``weekly_day`` (ISO, 1 = Monday .. 7 = Sunday),
    ``start_time`` ("HH:MM") and ``duration_minutes``; lessons are only
    generated inside ``[start_date, end_date]``.
    """
    public_id = models.CharField(max_length=20, unique=True, editable=False, verbose_name='Public ID')
    course = models.ForeignKey(
        Course,
        on_delete=models.PROTECT,
        related_name='groups',
        verbose_name='Course'
    )
    title = models.CharField(max_length=255, blank=True, verbose_name='Title')
    teacher = models.ForeignKey(  # type: ignore
        'user.Employee',
        on_delete=models.PROTECT,
        related_name='groups',
        limit_choices_to={'role': Role.TEACHER},
        verbose_name='Teacher'
    )
    weekly_day = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(7)],
        verbose_name='Weekly Day',
        help_text='ISO weekday: 1 = Monday, 7 = Sunday'
    )
    start_time = models.CharField(
        max_length=5,
        validators=[start_time_validator],
        verbose_name='Start Time',
        help_text='Lesson start time, HH:MM'
    )
    duration_minutes = models.PositiveIntegerField(
        default=default_lesson_duration,
        validators=[MinValueValidator(1)],
        verbose_name='Duration (minutes)'
    )
    timezone = models.CharField(
        max_length=64,
        default=default_group_timezone,
        validators=[validate_timezone_name],
        verbose_name='Timezone'
    )
    start_date = models.DateField(null=True, blank=True, verbose_name='Start Date')
    end_date = models.DateField(null=True, blank=True, verbose_name='End Date')
    capacity = models.PositiveIntegerField(null=True, blank=True, verbose_name='Capacity')
    monthly_price = models.PositiveIntegerField(default=0, verbose_name='Monthly Price')  # type: ignore
    status = models.CharField(
        max_length=20,
        choices=GroupStatus.choices,
        default=GroupStatus.ACTIVE,
        verbose_name='Status'
    )
    note = models.TextField(null=True, blank=True, verbose_name='Note')
    photos_folder_url = models.URLField(null=True, blank=True, verbose_name='Photos Folder URL')
    is_active = models.BooleanField(default=True, verbose_name='Is Active')  # type: ignore

    class Meta:  # type: ignore
        db_table = 'groups'
        verbose_name = 'Group'
        verbose_name_plural = 'Groups'
        ordering = ['weekly_day', 'start_time']

    def __str__(self):
        return self.title

    def clean(self):
        teacher = getattr(self, 'teacher', None) if self.teacher_id else None  # type: ignore
        if teacher is not None and teacher.role != Role.TEACHER:
            raise ValidationError({
                'teacher': 'Обраний співробітник має бути викладачем.'
            })
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError({
                'end_date': 'Дата завершення не може бути раніше дати початку.'
            })

    def save(self, *args, **kwargs):
        if not self.public_id:
            from user.api.utils import generate_unique_public_id
            self.public_id = generate_unique_public_id(
                'group', lambda value: not Group.objects.filter(public_id=value).exists()
            )
        if self.course_id:  # type: ignore
            self.title = build_group_title(self.weekly_day, self.start_time, self.course.title)
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def day_name(self) -> str:
        return DAY_SHORT_NAMES.get(self.weekly_day, '')

    @property
    def active_students_count(self) -> int:
        return self.memberships.filter(is_active=True).count()  # type: ignore

    def lesson_bounds(self, lesson_date: date, duration_minutes: int | None = None, start_time: str | None = None):
        """
        Return ``(start_datetime, end_datetime)`` of a lesson held on
        ``lesson_date``, aware in the group's timezone.
        """
        hours, minutes = (start_time or self.start_time).split(':')
        start = datetime.combine(lesson_date, time(int(hours), int(minutes)), tzinfo=ZoneInfo(self.timezone))
        duration = self.duration_minutes if duration_minutes is None else duration_minutes
        return start, start + timedelta(minutes=duration)


class StudentGroup(BaseModel):
    student = models.ForeignKey(
        'user.Student',
        on_delete=models.CASCADE,
        related_name='memberships',
        verbose_name='Student'
    )
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name='memberships',
        verbose_name='Group'
    )
    join_date = models.DateField(default=today, verbose_name='Join Date')
    leave_date = models.DateField(null=True, blank=True, verbose_name='Leave Date')
    is_active = models.BooleanField(default=True, verbose_name='Is Active')  # type: ignore
    notes = models.TextField(null=True, blank=True, verbose_name='Notes')

    class Meta:  # type: ignore
        db_table = 'student_groups'
        verbose_name = 'Student Group'
        verbose_name_plural = 'Student Groups'
        ordering = ['-join_date']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'group', 'join_date'],
                name='unique_student_group_join_date'
            ),
        ]

    def __str__(self):
        return f"{self.student} → {self.group} ({self.join_date})"


class Lesson(BaseModel):
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name='lessons',
        verbose_name='Group'
    )
    lesson_date = models.DateField(verbose_name='Lesson Date')
    start_datetime = models.DateTimeField(verbose_name='Start')
    end_datetime = models.DateTimeField(verbose_name='End')
    topic = models.CharField(max_length=500, null=True, blank=True, verbose_name='Topic')
    status = models.CharField(
        max_length=20,
        choices=LessonStatus.choices,
        default=LessonStatus.SCHEDULED,
        verbose_name='Status'
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_lessons',
        verbose_name='Created By'
    )

    class Meta:  # type: ignore
        db_table = 'lessons'
        verbose_name = 'Lesson'
        verbose_name_plural = 'Lessons'
        ordering = ['lesson_date', 'start_datetime']
        constraints = [
            models.UniqueConstraint(
                fields=['group', 'lesson_date'],
                name='unique_lesson_per_group_date'
            ),
        ]
        indexes = [
            models.Index(fields=['lesson_date'], name='lessons_lesson_date_idx'),
        ]

    def __str__(self):
        return f"{self.group.title} - {self.lesson_date}"

    @property
    def duration_minutes(self) -> int:
        return int((self.end_datetime - self.start_datetime).total_seconds() // 60)


class Attendance(BaseModel):
    lesson = models.ForeignKey(
        Lesson,
        on_delete=models.CASCADE,
        related_name='attendance_records',
        verbose_name='Lesson'
    )
    student = models.ForeignKey(
        'user.Student',
        on_delete=models.CASCADE,
        related_name='attendance_records',
        verbose_name='Student'
    )
    status = models.CharField(
        max_length=20,
        choices=AttendanceStatus.choices,
        verbose_name='Status'
    )
    comment = models.TextField(null=True, blank=True, verbose_name='Comment')
    makeup_lesson = models.ForeignKey(
        Lesson,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='makeup_attendance_records',
        verbose_name='Makeup Lesson'
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='attendance_updates',
        verbose_name='Updated By'
    )

    class Meta:  # type: ignore
        db_table = 'attendance'
        verbose_name = 'Attendance'
        verbose_name_plural = 'Attendance'
        ordering = ['lesson__lesson_date', 'student__full_name']
        constraints = [
            models.UniqueConstraint(
                fields=['lesson', 'student'],
                name='unique_attendance_lesson_student'
            ),
        ]

    def __str__(self):
        return f"{self.student} - {self.lesson} - {self.status}"


class GroupHistory(models.Model):
    """Append-only audit entry; rows are never updated or deleted one by one."""
    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name='history',
        verbose_name='Group'
    )
    action_type = models.CharField(
        max_length=30,
        choices=HistoryAction.choices,
        verbose_name='Action Type'
    )
    action_description = models.TextField(verbose_name='Description')
    old_value = models.TextField(null=True, blank=True, verbose_name='Old Value')
    new_value = models.TextField(null=True, blank=True, verbose_name='New Value')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='group_history_entries',
        verbose_name='User'
    )
    user_name = models.CharField(max_length=255, verbose_name='User Name')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_history'
        verbose_name = 'Group History Entry'
        verbose_name_plural = 'Group History'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.group_id} {self.action_type}: {self.action_description}"  # type: ignore

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError('Group history entries are immutable.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError('Group history entries cannot be deleted individually.')

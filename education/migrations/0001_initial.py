import django.core.validators
import django.db.models.deletion
import education.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('user', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Course',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('public_id', models.CharField(editable=False, max_length=20, unique=True, verbose_name='Public ID')),
                ('title', models.CharField(max_length=255, verbose_name='Title')),
                ('description', models.TextField(blank=True, null=True, verbose_name='Description')),
                ('age_min', models.PositiveSmallIntegerField(default=6, verbose_name='Minimum Age')),
                ('duration_months', models.PositiveSmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)], verbose_name='Duration (months)')),
                ('program', models.TextField(blank=True, null=True, verbose_name='Program')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
            ],
            options={
                'verbose_name': 'Course',
                'verbose_name_plural': 'Courses',
                'db_table': 'courses',
                'ordering': ['title'],
            },
        ),
        migrations.CreateModel(
            name='Group',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('public_id', models.CharField(editable=False, max_length=20, unique=True, verbose_name='Public ID')),
                ('title', models.CharField(blank=True, max_length=255, verbose_name='Title')),
                ('weekly_day', models.PositiveSmallIntegerField(help_text='ISO weekday: 1 = Monday, 7 = Sunday', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(7)], verbose_name='Weekly Day')),
                ('start_time', models.CharField(help_text='Lesson start time, HH:MM', max_length=5, validators=[django.core.validators.RegexValidator(message='Некоректний формат часу. Використовуйте ГГ:ХХ', regex='^([01]\\d|2[0-3]):[0-5]\\d$')], verbose_name='Start Time')),
                ('duration_minutes', models.PositiveIntegerField(default=education.models.default_lesson_duration, validators=[django.core.validators.MinValueValidator(1)], verbose_name='Duration (minutes)')),
                ('timezone', models.CharField(default=education.models.default_group_timezone, max_length=64, validators=[education.models.validate_timezone_name], verbose_name='Timezone')),
                ('start_date', models.DateField(blank=True, null=True, verbose_name='Start Date')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='End Date')),
                ('capacity', models.PositiveIntegerField(blank=True, null=True, verbose_name='Capacity')),
                ('monthly_price', models.PositiveIntegerField(default=0, verbose_name='Monthly Price')),
                ('status', models.CharField(choices=[('active', 'Активна'), ('graduate', 'Випуск'), ('inactive', 'Неактивна')], default='active', max_length=20, verbose_name='Status')),
                ('note', models.TextField(blank=True, null=True, verbose_name='Note')),
                ('photos_folder_url', models.URLField(blank=True, null=True, verbose_name='Photos Folder URL')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='groups', to='education.course', verbose_name='Course')),
                ('teacher', models.ForeignKey(limit_choices_to={'role': 'teacher'}, on_delete=django.db.models.deletion.PROTECT, related_name='groups', to='user.employee', verbose_name='Teacher')),
            ],
            options={
                'verbose_name': 'Group',
                'verbose_name_plural': 'Groups',
                'db_table': 'groups',
                'ordering': ['weekly_day', 'start_time'],
            },
        ),
        migrations.CreateModel(
            name='StudentGroup',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('join_date', models.DateField(default=education.models.today, verbose_name='Join Date')),
                ('leave_date', models.DateField(blank=True, null=True, verbose_name='Leave Date')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('notes', models.TextField(blank=True, null=True, verbose_name='Notes')),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='education.group', verbose_name='Group')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='user.student', verbose_name='Student')),
            ],
            options={
                'verbose_name': 'Student Group',
                'verbose_name_plural': 'Student Groups',
                'db_table': 'student_groups',
                'ordering': ['-join_date'],
                'constraints': [models.UniqueConstraint(fields=('student', 'group', 'join_date'), name='unique_student_group_join_date')],
            },
        ),
        migrations.CreateModel(
            name='Lesson',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lesson_date', models.DateField(verbose_name='Lesson Date')),
                ('start_datetime', models.DateTimeField(verbose_name='Start')),
                ('end_datetime', models.DateTimeField(verbose_name='End')),
                ('topic', models.CharField(blank=True, max_length=500, null=True, verbose_name='Topic')),
                ('status', models.CharField(choices=[('scheduled', 'Заплановано'), ('done', 'Проведено'), ('canceled', 'Скасовано')], default='scheduled', max_length=20, verbose_name='Status')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_lessons', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lessons', to='education.group', verbose_name='Group')),
            ],
            options={
                'verbose_name': 'Lesson',
                'verbose_name_plural': 'Lessons',
                'db_table': 'lessons',
                'ordering': ['lesson_date', 'start_datetime'],
                'indexes': [models.Index(fields=['lesson_date'], name='lessons_lesson_date_idx')],
                'constraints': [models.UniqueConstraint(fields=('group', 'lesson_date'), name='unique_lesson_per_group_date')],
            },
        ),
        migrations.CreateModel(
            name='Attendance',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('status', models.CharField(choices=[('present', 'Присутній'), ('absent', 'Відсутній'), ('makeup_planned', 'Відпрацювання заплановано'), ('makeup_done', 'Відпрацьовано')], max_length=20, verbose_name='Status')),
                ('comment', models.TextField(blank=True, null=True, verbose_name='Comment')),
                ('lesson', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='education.lesson', verbose_name='Lesson')),
                ('makeup_lesson', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='makeup_attendance_records', to='education.lesson', verbose_name='Makeup Lesson')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='user.student', verbose_name='Student')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='attendance_updates', to=settings.AUTH_USER_MODEL, verbose_name='Updated By')),
            ],
            options={
                'verbose_name': 'Attendance',
                'verbose_name_plural': 'Attendance',
                'db_table': 'attendance',
                'ordering': ['lesson__lesson_date', 'student__full_name'],
                'constraints': [models.UniqueConstraint(fields=('lesson', 'student'), name='unique_attendance_lesson_student')],
            },
        ),
        migrations.CreateModel(
            name='GroupHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action_type', models.CharField(choices=[('created', 'Створено'), ('edited', 'Змінено'), ('teacher_changed', 'Змінено викладача'), ('student_added', 'Додано учня'), ('student_removed', 'Видалено учня'), ('lesson_conducted', 'Проведено заняття'), ('status_changed', 'Змінено статус'), ('deleted', 'Видалено')], max_length=30, verbose_name='Action Type')),
                ('action_description', models.TextField(verbose_name='Description')),
                ('old_value', models.TextField(blank=True, null=True, verbose_name='Old Value')),
                ('new_value', models.TextField(blank=True, null=True, verbose_name='New Value')),
                ('user_name', models.CharField(max_length=255, verbose_name='User Name')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='education.group', verbose_name='Group')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='group_history_entries', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Group History Entry',
                'verbose_name_plural': 'Group History',
                'db_table': 'group_history',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


PHONE_VALIDATOR = django.core.validators.RegexValidator(
    message="Телефон має бути у форматі '+380XXXXXXXXX'. Від 9 до 15 цифр.",
    regex='^\\+?\\d{9,15}$',
)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, max_length=254, unique=True, verbose_name='email address')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'User',
                'verbose_name_plural': 'Users',
                'db_table': 'users',
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Employee',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('public_id', models.CharField(editable=False, max_length=20, unique=True, verbose_name='Public ID')),
                ('full_name', models.CharField(max_length=255, verbose_name='Full Name')),
                ('role', models.CharField(choices=[('admin', 'Адміністратор'), ('teacher', 'Викладач')], default='teacher', max_length=50, verbose_name='Role')),
                ('phone', models.CharField(blank=True, max_length=17, null=True, validators=[PHONE_VALIDATOR], verbose_name='Phone Number')),
                ('telegram_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Telegram ID')),
                ('photo_url', models.URLField(blank=True, null=True, verbose_name='Photo URL')),
                ('notes', models.TextField(blank=True, null=True, verbose_name='Notes')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='employee_profile', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Employee',
                'verbose_name_plural': 'Employees',
                'db_table': 'employees',
                'ordering': ['full_name'],
            },
        ),
        migrations.CreateModel(
            name='Student',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('public_id', models.CharField(editable=False, max_length=20, unique=True, verbose_name='Public ID')),
                ('full_name', models.CharField(max_length=255, verbose_name='Full Name')),
                ('phone', models.CharField(blank=True, max_length=17, null=True, validators=[PHONE_VALIDATOR], verbose_name='Phone Number')),
                ('email', models.EmailField(blank=True, max_length=254, null=True, verbose_name='Email')),
                ('parent_name', models.CharField(blank=True, max_length=255, null=True, verbose_name='Parent Name')),
                ('parent_phone', models.CharField(blank=True, max_length=17, null=True, validators=[PHONE_VALIDATOR], verbose_name='Parent Phone')),
                ('parent_relation', models.CharField(blank=True, max_length=50, null=True, verbose_name='Parent Relation')),
                ('birth_date', models.DateField(blank=True, null=True, verbose_name='Birth Date')),
                ('school', models.CharField(blank=True, max_length=255, null=True, verbose_name='School')),
                ('discount', models.CharField(blank=True, max_length=100, null=True, verbose_name='Discount')),
                ('source', models.CharField(blank=True, choices=[('instagram', 'Instagram'), ('facebook', 'Facebook'), ('telegram', 'Telegram'), ('recommendation', 'Рекомендація'), ('other', 'Інше')], max_length=50, null=True, verbose_name='Source')),
                ('notes', models.TextField(blank=True, null=True, verbose_name='Notes')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
            ],
            options={
                'verbose_name': 'Student',
                'verbose_name_plural': 'Students',
                'db_table': 'students',
                'ordering': ['full_name'],
                'indexes': [
                    models.Index(fields=['full_name'], name='students_full_name_idx'),
                    models.Index(fields=['is_active'], name='students_is_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ErrorLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('error_message', models.TextField(verbose_name='Error Message')),
                ('error_stack', models.TextField(blank=True, null=True, verbose_name='Stack Trace')),
                ('request_path', models.CharField(blank=True, max_length=500, null=True, verbose_name='Request Path')),
                ('request_method', models.CharField(blank=True, max_length=10, null=True, verbose_name='Request Method')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='error_logs', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Error Log',
                'verbose_name_plural': 'Error Logs',
                'db_table': 'error_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]

from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import RegexValidator
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):  # type: ignore
    
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_('The Email field must be set'))
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user
    
    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        
        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))
        
        return self.create_user(email, password, **extra_fields)


class BaseModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Role(models.TextChoices):
    ADMIN = ('admin', 'Адміністратор')
    TEACHER = ('teacher', 'Викладач')


class Source(models.TextChoices):
    INSTAGRAM = ('instagram', 'Instagram')
    FACEBOOK = ('facebook', 'Facebook')
    TELEGRAM = ('telegram', 'Telegram')
    RECOMMENDATION = ('recommendation', 'Рекомендація')
    OTHER = ('other', 'Інше')


phone_regex = RegexValidator(
    regex=r'^\+?\d{9,15}$',
    message="Телефон має бути у форматі '+380XXXXXXXXX'. Від 9 до 15 цифр."
)


class User(AbstractUser):
    username = None
    email = models.EmailField(
        _('email address'),
        unique=True,
        error_messages={
            'unique': _("A user with that email already exists."),
        },
    )
    
    objects = UserManager()  # type: ignore
    
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']
    
    class Meta(AbstractUser.Meta):  # type: ignore
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'


class Employee(BaseModel):
    """
    Staff profile. Administrators log in through their User;
    teachers are assigned to groups and may have no User at all.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='employee_profile',
        null=True,
        blank=True,
        verbose_name='User'
    )
    public_id = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name='Public ID'
    )
    full_name = models.CharField(max_length=255, verbose_name='Full Name')
    role = models.CharField(
        max_length=50,
        choices=Role.choices,
        default=Role.TEACHER,
        verbose_name='Role'
    )
    phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        null=True,
        blank=True,
        verbose_name='Phone Number'
    )
    telegram_id = models.CharField(max_length=100, null=True, blank=True, verbose_name='Telegram ID')
    photo_url = models.URLField(null=True, blank=True, verbose_name='Photo URL')
    notes = models.TextField(null=True, blank=True, verbose_name='Notes')
    is_active = models.BooleanField(default=True, verbose_name='Is Active')  # type: ignore

    class Meta:  # type: ignore
        db_table = 'employees'
        verbose_name = 'Employee'
        verbose_name_plural = 'Employees'
        ordering = ['full_name']

    def save(self, *args, **kwargs):
        if not self.public_id:
            from user.api.utils import generate_unique_public_id
            self.public_id = generate_unique_public_id(
                'teacher', lambda value: not Employee.objects.filter(public_id=value).exists()
            )
        self.full_clean()
        super().save(*args, **kwargs)

    def __str__(self):
        role_display = getattr(self, 'get_role_display', lambda: self.role)()
        return f"{self.full_name} - {role_display}"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Student(BaseModel):
    public_id = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name='Public ID'
    )
    full_name = models.CharField(max_length=255, verbose_name='Full Name')
    phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        null=True,
        blank=True,
        verbose_name='Phone Number'
    )
    email = models.EmailField(null=True, blank=True, verbose_name='Email')
    parent_name = models.CharField(max_length=255, null=True, blank=True, verbose_name='Parent Name')
    parent_phone = models.CharField(
        validators=[phone_regex],
        max_length=17,
        null=True,
        blank=True,
        verbose_name='Parent Phone'
    )
    parent_relation = models.CharField(max_length=50, null=True, blank=True, verbose_name='Parent Relation')
    birth_date = models.DateField(null=True, blank=True, verbose_name='Birth Date')
    school = models.CharField(max_length=255, null=True, blank=True, verbose_name='School')
    discount = models.CharField(max_length=100, null=True, blank=True, verbose_name='Discount')
    source = models.CharField(
        max_length=50,
        choices=Source.choices,
        null=True,
        blank=True,
        verbose_name='Source'
    )
    notes = models.TextField(null=True, blank=True, verbose_name='Notes')
    is_active = models.BooleanField(default=True, verbose_name='Is Active')  # type: ignore

    class Meta:  # type: ignore
        db_table = 'students'
        verbose_name = 'Student'
        verbose_name_plural = 'Students'
        ordering = ['full_name']
        indexes = [
            models.Index(fields=['full_name'], name='students_full_name_idx'),
            models.Index(fields=['is_active'], name='students_is_active_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self.public_id:
            from user.api.utils import generate_unique_public_id
            self.public_id = generate_unique_public_id(
                'student', lambda value: not Student.objects.filter(public_id=value).exists()
            )
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.full_name} ({self.public_id})"


class ErrorLog(models.Model):
    error_message = models.TextField(verbose_name='Error Message')
    error_stack = models.TextField(null=True, blank=True, verbose_name='Stack Trace')
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='error_logs',
        verbose_name='User'
    )
    request_path = models.CharField(max_length=500, null=True, blank=True, verbose_name='Request Path')
    request_method = models.CharField(max_length=10, null=True, blank=True, verbose_name='Request Method')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'error_logs'
        verbose_name = 'Error Log'
        verbose_name_plural = 'Error Logs'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.request_method} {self.request_path}: {self.error_message[:80]}"

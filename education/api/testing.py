from datetime import date

from education.models import Course, Group, StudentGroup
from user.models import Employee, Role, Student, User


def create_admin(email='admin@test.com', full_name='Анна Адміністратор'):
    user = User.objects.create_user(email=email, password='testpass123')
    Employee.objects.create(user=user, full_name=full_name, role=Role.ADMIN)
    return user


def create_teacher(email='teacher@test.com', full_name='Олена Коваль'):
    user = User.objects.create_user(email=email, password='testpass123')
    employee = Employee.objects.create(user=user, full_name=full_name, role=Role.TEACHER)
    return user, employee


def create_group(teacher, course=None, **overrides):
    if course is None:
        course = Course.objects.create(title='Робототехніка')
    fields = {
        'course': course,
        'teacher': teacher,
        'weekly_day': 2,
        'start_time': '16:00',
        'duration_minutes': 90,
        'start_date': date(2026, 9, 1),
    }
    fields.update(overrides)
    return Group.objects.create(**fields)


def enroll(group, *names):
    students = []
    for name in names:
        student = Student.objects.create(full_name=name)
        StudentGroup.objects.create(group=group, student=student, join_date=date(2026, 9, 1))
        students.append(student)
    return students

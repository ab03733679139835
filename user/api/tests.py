from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from user.models import Employee, Role, Student, User
from user.api.utils import generate_public_id, generate_unique_public_id


def authenticate(client, user):
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')


class PublicIdTestCase(TestCase):
    def test_public_id_format(self):
        public_id = generate_public_id('student')
        prefix, suffix = public_id.split('-')
        self.assertEqual(prefix, 'STU')
        self.assertEqual(len(suffix), 8)
        self.assertTrue(all(c.isupper() or c.isdigit() for c in suffix))
    
    def test_unknown_entity_type_rejected(self):
        with self.assertRaises(ValueError):
            generate_public_id('payment')
    
    def test_unique_public_id_retries_then_gives_up(self):
        calls = []
        
        def never_unique(candidate):
            calls.append(candidate)
            return False
        
        with self.assertRaises(RuntimeError):
            generate_unique_public_id('group', never_unique)
        self.assertEqual(len(calls), 5)
        self.assertTrue(all(c.startswith('GRP-') for c in calls))
        self.assertEqual(len(calls[-1].split('-')[1]), 10)
    
    def test_models_receive_public_ids(self):
        student = Student.objects.create(full_name='Іван Петренко')
        teacher = Employee.objects.create(full_name='Олена Коваль', role=Role.TEACHER)
        self.assertTrue(student.public_id.startswith('STU-'))
        self.assertTrue(teacher.public_id.startswith('TCH-'))


class EmployeeAuthenticationAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(
            email='admin@test.com',
            password='testpass123',
            first_name='Anna',
            last_name='Admin'
        )
        self.employee = Employee.objects.create(
            user=self.user,
            full_name='Anna Admin',
            role=Role.ADMIN
        )
    
    def test_employee_login_success(self):
        url = reverse('user_api:employee-login')
        response = self.client.post(url, {'email': 'admin@test.com', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        self.assertIn('access', response.data['data']['tokens'])
        self.assertEqual(response.data['data']['employee']['role'], Role.ADMIN)
    
    def test_employee_login_wrong_password(self):
        url = reverse('user_api:employee-login')
        response = self.client.post(url, {'email': 'admin@test.com', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_login_refused_for_deactivated_employee(self):
        self.employee.is_active = False
        self.employee.save()
        url = reverse('user_api:employee-login')
        response = self.client.post(url, {'email': 'admin@test.com', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_profile_requires_authentication(self):
        response = self.client.get(reverse('user_api:employee-profile'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
    
    def test_profile_update_ignores_role(self):
        authenticate(self.client, self.user)
        url = reverse('user_api:employee-profile')
        response = self.client.patch(url, {'full_name': 'Anna A.', 'role': Role.TEACHER}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.employee.refresh_from_db()
        self.assertEqual(self.employee.full_name, 'Anna A.')
        self.assertEqual(self.employee.role, Role.ADMIN)
    
    def test_password_change(self):
        authenticate(self.client, self.user)
        url = reverse('user_api:password-change')
        data = {
            'old_password': 'testpass123',
            'new_password': 'N3w-Secure-Pass!',
            'new_password_confirm': 'N3w-Secure-Pass!',
        }
        response = self.client.post(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('N3w-Secure-Pass!'))
    
    def test_administrator_registration(self):
        authenticate(self.client, self.user)
        url = reverse('user_api:administrator-register')
        data = {
            'email': 'second@test.com',
            'first_name': 'Bohdan',
            'last_name': 'Second',
            'password': 'SecurePassword123!',
            'password_confirm': 'SecurePassword123!',
            'full_name': 'Bohdan Second',
        }
        response = self.client.post(url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        employee = Employee.objects.get(user__email='second@test.com')
        self.assertEqual(employee.role, Role.ADMIN)


class TeacherManagementAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin_user = User.objects.create_user(email='admin@test.com', password='testpass123')
        Employee.objects.create(user=self.admin_user, full_name='Admin', role=Role.ADMIN)
        self.teacher_user = User.objects.create_user(email='teacher@test.com', password='testpass123')
        self.teacher = Employee.objects.create(
            user=self.teacher_user, full_name='Олена Коваль', role=Role.TEACHER
        )
    
    def test_list_teachers(self):
        authenticate(self.client, self.admin_user)
        response = self.client.get(reverse('user_api:teacher-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [row['full_name'] for row in response.data['results']]
        self.assertEqual(names, ['Олена Коваль'])
        self.assertEqual(response.data['results'][0]['active_groups_count'], 0)
    
    def test_create_teacher_forces_teacher_role(self):
        authenticate(self.client, self.admin_user)
        response = self.client.post(
            reverse('user_api:teacher-list'),
            {'full_name': 'Петро Мельник', 'phone': '+380501112233', 'role': Role.ADMIN},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        teacher = Employee.objects.get(full_name='Петро Мельник')
        self.assertEqual(teacher.role, Role.TEACHER)
        self.assertIsNone(teacher.user)
    
    def test_teacher_cannot_create_teacher(self):
        authenticate(self.client, self.teacher_user)
        response = self.client.post(
            reverse('user_api:teacher-list'), {'full_name': 'X'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
    
    def test_delete_deactivates_teacher(self):
        authenticate(self.client, self.admin_user)
        url = reverse('user_api:teacher-detail', kwargs={'pk': self.teacher.pk})
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.teacher.refresh_from_db()
        self.assertFalse(self.teacher.is_active)


class StudentManagementAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin_user = User.objects.create_user(email='admin@test.com', password='testpass123')
        Employee.objects.create(user=self.admin_user, full_name='Admin', role=Role.ADMIN)
        authenticate(self.client, self.admin_user)
        self.student = Student.objects.create(
            full_name='Іван Петренко',
            phone='+380671234567',
            parent_name='Марія Петренко',
            parent_phone='+380679876543'
        )
        Student.objects.create(full_name='Олег Сидоренко', phone='+380501111111')
    
    def test_search_by_parent_phone(self):
        response = self.client.get(reverse('user_api:student-list'), {'search': '9876543'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.student.id)
    
    def test_create_student_requires_name(self):
        response = self.client.post(reverse('user_api:student-list'), {'full_name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_create_student(self):
        response = self.client.post(
            reverse('user_api:student-list'),
            {'full_name': 'Нова Учениця', 'school': 'Ліцей 1'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['data']['public_id'].startswith('STU-'))
        self.assertEqual(response.data['data']['groups'], [])
    
    def test_archive_hides_student_from_default_list(self):
        url = reverse('user_api:student-archive', kwargs={'pk': self.student.pk})
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        
        response = self.client.get(reverse('user_api:student-list'))
        ids = [row['id'] for row in response.data['results']]
        self.assertNotIn(self.student.id, ids)
        
        response = self.client.get(reverse('user_api:student-list'), {'include_inactive': 'true'})
        ids = [row['id'] for row in response.data['results']]
        self.assertIn(self.student.id, ids)
    
    def test_restore_student(self):
        self.student.is_active = False
        self.student.save()
        url = reverse('user_api:student-restore', kwargs={'pk': self.student.pk})
        self.client.post(url)
        self.student.refresh_from_db()
        self.assertTrue(self.student.is_active)


class ErrorLoggingMiddlewareTestCase(TestCase):
    def test_unhandled_error_is_persisted(self):
        from user.models import ErrorLog
        user = User.objects.create_user(email='admin@test.com', password='testpass123')
        Employee.objects.create(user=user, full_name='Admin', role=Role.ADMIN)
        client = APIClient()
        client.raise_request_exception = False
        authenticate(client, user)
        
        with patch('user.api.student_views.StudentListView.get_queryset', side_effect=RuntimeError('boom')):
            response = client.get(reverse('user_api:student-list'))
        
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        log = ErrorLog.objects.get()
        self.assertEqual(log.error_message, 'boom')
        self.assertEqual(log.request_method, 'GET')
        self.assertIn('RuntimeError', log.error_stack)

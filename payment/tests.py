from datetime import date

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from education import attendance_service, schedule_service
from education.models import AttendanceStatus, Lesson, StudentGroup
from education.api.testing import create_admin, create_group, create_teacher, enroll
from payment import services
from payment.exceptions import StudentNotInGroupError
from payment.models import Payment, PaymentMethod
from user.models import Student

OCTOBER = date(2026, 10, 1)
MONDAY = date(2026, 10, 19)


def authenticate(client, user):
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')


class PaymentServiceTestCase(TestCase):
    def setUp(self):
        self.admin = create_admin()
        self.teacher_user, self.teacher = create_teacher()
        self.group = create_group(self.teacher, monthly_price=1200)
        self.ivan, self.maria = enroll(self.group, 'Іван', 'Марія')
    
    def pay(self, student, amount, method=PaymentMethod.CASH, month=OCTOBER, group=None):
        return services.create_payment(student, group or self.group, month, amount, method, created_by=self.admin)
    
    def test_calculate_debt_never_negative(self):
        self.assertEqual(services.calculate_debt(1200, 500), 700)
        self.assertEqual(services.calculate_debt(1200, 1500), 0)
        self.assertEqual(services.calculate_debt(None, None), 0)
    
    def test_create_payment_stores_first_day_of_month(self):
        payment = self.pay(self.ivan, 600, month=date(2026, 10, 17))
        
        self.assertEqual(payment.month, OCTOBER)
        self.assertEqual(payment.created_by, self.admin)
    
    def test_create_payment_rejects_non_member(self):
        stranger = Student.objects.create(full_name='Петро')
        
        with self.assertRaises(StudentNotInGroupError):
            self.pay(stranger, 600)
        self.assertFalse(Payment.objects.exists())
    
    def test_create_payment_allowed_after_student_left(self):
        StudentGroup.objects.filter(student=self.ivan).update(is_active=False, leave_date=MONDAY)
        
        payment = self.pay(self.ivan, 300)
        
        self.assertIsNotNone(payment.pk)
    
    def test_payment_status_sums_partial_payments(self):
        self.pay(self.ivan, 500)
        self.pay(self.ivan, 300, method=PaymentMethod.ACCOUNT)
        self.pay(self.ivan, 1000, month=date(2026, 9, 1))
        
        rows = services.get_payment_status_for_group_month(self.group.pk, OCTOBER)
        
        self.assertEqual([row['student_name'] for row in rows], ['Іван', 'Марія'])
        self.assertEqual(rows[0]['total_paid'], 800)
        self.assertEqual(rows[0]['debt'], 400)
        self.assertEqual(len(rows[0]['payments']), 2)
        self.assertEqual(rows[1]['total_paid'], 0)
        self.assertEqual(rows[1]['debt'], 1200)
    
    def test_overpayment_leaves_zero_debt(self):
        self.pay(self.maria, 1500)
        
        rows = services.get_payment_status_for_group_month(self.group.pk, OCTOBER)
        
        self.assertEqual(rows[1]['debt'], 0)
    
    def test_students_with_debt_ordered_by_debt(self):
        self.pay(self.ivan, 1200)
        self.pay(self.maria, 200)
        other_group = create_group(self.teacher, course=self.group.course, weekly_day=4, monthly_price=900)
        (oleh,) = enroll(other_group, 'Олег')
        
        debtors = services.get_students_with_debt(OCTOBER)
        
        self.assertEqual([row['student_name'] for row in debtors], ['Марія', 'Олег'])
        self.assertEqual(debtors[0]['debt'], 1000)
        self.assertEqual(debtors[0]['paid_amount'], 200)
        self.assertEqual(debtors[1]['debt'], 900)
        self.assertEqual(debtors[1]['student_id'], oleh.pk)
    
    def test_students_with_debt_filtered_by_groups(self):
        other_group = create_group(self.teacher, course=self.group.course, weekly_day=4, monthly_price=900)
        enroll(other_group, 'Олег')
        
        debtors = services.get_students_with_debt(OCTOBER, group_ids=[other_group.pk])
        
        self.assertEqual([row['student_name'] for row in debtors], ['Олег'])
    
    def test_students_with_debt_skips_inactive_memberships(self):
        StudentGroup.objects.filter(student=self.ivan).update(is_active=False)
        
        debtors = services.get_students_with_debt(OCTOBER)
        
        self.assertEqual([row['student_name'] for row in debtors], ['Марія'])
    
    def test_total_debt_for_month(self):
        self.pay(self.ivan, 700)
        
        totals = services.get_total_debt_for_month(OCTOBER)
        
        self.assertEqual(totals, {'total_debt': 1700, 'students_count': 2})
    
    def test_payment_stats_by_method(self):
        self.pay(self.ivan, 500)
        self.pay(self.maria, 700, method=PaymentMethod.ACCOUNT)
        self.pay(self.maria, 300, month=date(2026, 9, 1))
        
        stats = services.get_payment_stats(start_month=OCTOBER, end_month=OCTOBER)
        
        self.assertEqual(stats['total_amount'], 1200)
        self.assertEqual(stats['cash_amount'], 500)
        self.assertEqual(stats['account_amount'], 700)
        self.assertEqual(stats['payments_count'], 2)
    
    def test_payment_stats_empty(self):
        stats = services.get_payment_stats()
        
        self.assertEqual(stats['total_amount'], 0)
        self.assertEqual(stats['payments_count'], 0)


class PaymentAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = create_admin()
        self.teacher_user, self.teacher = create_teacher()
        self.group = create_group(self.teacher, monthly_price=1200)
        self.ivan, self.maria = enroll(self.group, 'Іван', 'Марія')
    
    def create_payment(self, student, amount=500, method=PaymentMethod.CASH):
        return services.create_payment(student, self.group, OCTOBER, amount, method, created_by=self.admin)
    
    def test_group_payment_status(self):
        self.create_payment(self.ivan, 500)
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(
            reverse('payment:group-payments', kwargs={'pk': self.group.pk}), {'month': '2026-10'}
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['month'], '2026-10-01')
        self.assertEqual(data['monthly_price'], 1200)
        self.assertEqual(data['students'][0]['debt'], 700)
        self.assertEqual(data['students'][1]['debt'], 1200)
    
    def test_group_payment_status_invalid_month(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(
            reverse('payment:group-payments', kwargs={'pk': self.group.pk}), {'month': 'жовтень'}
        )
        
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_other_teacher_cannot_see_group_payments(self):
        other_user, _ = create_teacher(email='other@test.com', full_name='Ігор Мельник')
        authenticate(self.client, other_user)
        
        response = self.client.get(reverse('payment:group-payments', kwargs={'pk': self.group.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
    
    def test_create_payment(self):
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('payment:group-payments', kwargs={'pk': self.group.pk}),
            {'student_id': self.ivan.pk, 'month': '2026-10', 'amount': 600, 'method': 'account', 'note': 'Перша частина'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['month'], '2026-10-01')
        self.assertEqual(response.data['data']['method_display'], 'На рахунок')
        payment = Payment.objects.get()
        self.assertEqual(payment.created_by, self.admin)
        self.assertEqual(payment.amount, 600)
    
    def test_teacher_cannot_create_payment(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.post(
            reverse('payment:group-payments', kwargs={'pk': self.group.pk}),
            {'student_id': self.ivan.pk, 'month': '2026-10', 'amount': 600, 'method': 'cash'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
    
    def test_create_payment_validation(self):
        authenticate(self.client, self.admin)
        url = reverse('payment:group-payments', kwargs={'pk': self.group.pk})
        
        invalid_payloads = [
            {'student_id': self.ivan.pk, 'month': '2026-10', 'amount': 0, 'method': 'cash'},
            {'student_id': self.ivan.pk, 'month': '2026-10', 'amount': 100, 'method': 'card'},
            {'student_id': self.ivan.pk, 'month': '10/2026', 'amount': 100, 'method': 'cash'},
        ]
        for payload in invalid_payloads:
            response = self.client.post(url, payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, payload)
        self.assertFalse(Payment.objects.exists())
    
    def test_create_payment_for_non_member(self):
        stranger = Student.objects.create(full_name='Петро')
        authenticate(self.client, self.admin)
        
        response = self.client.post(
            reverse('payment:group-payments', kwargs={'pk': self.group.pk}),
            {'student_id': stranger.pk, 'month': '2026-10', 'amount': 600, 'method': 'cash'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_group_month_records(self):
        self.create_payment(self.maria, 300)
        self.create_payment(self.ivan, 400)
        authenticate(self.client, self.admin)
        
        response = self.client.get(
            reverse('payment:group-payment-records', kwargs={'pk': self.group.pk}), {'month': '2026-10'}
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['student_name'] for row in response.data['data']], ['Іван', 'Марія'])
    
    def test_update_payment(self):
        payment = self.create_payment(self.ivan, 500)
        authenticate(self.client, self.admin)
        
        response = self.client.put(
            reverse('payment:payment-detail', kwargs={'pk': payment.pk}),
            {'amount': 800, 'method': 'account'},
            format='json'
        )
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        payment.refresh_from_db()
        self.assertEqual(payment.amount, 800)
        self.assertEqual(payment.method, PaymentMethod.ACCOUNT)
    
    def test_delete_payment(self):
        payment = self.create_payment(self.ivan, 500)
        authenticate(self.client, self.admin)
        url = reverse('payment:payment-detail', kwargs={'pk': payment.pk})
        
        response = self.client.delete(url)
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
    
    def test_payment_stats_admin_only(self):
        self.create_payment(self.ivan, 500)
        url = reverse('payment:payment-stats')
        
        authenticate(self.client, self.teacher_user)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)
        
        authenticate(self.client, self.admin)
        response = self.client.get(url, {'start_month': '2026-10', 'end_month': '2026-10'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['cash_amount'], 500)
    
    def test_payment_stats_rejects_reversed_range(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(
            reverse('payment:payment-stats'), {'start_month': '2026-10', 'end_month': '2026-09'}
        )
        
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
    
    def test_student_payment_history(self):
        self.create_payment(self.ivan, 500)
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:student-payments', kwargs={'pk': self.ivan.pk}))
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 1)
        
        response = self.client.get(reverse('payment:student-payments', kwargs={'pk': 999999}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ReportAPITestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = create_admin()
        self.teacher_user, self.teacher = create_teacher()
        self.other_user, self.other_teacher = create_teacher(email='other@test.com', full_name='Ігор Мельник')
        self.group = create_group(self.teacher, monthly_price=1200)
        self.other_group = create_group(self.other_teacher, course=self.group.course, weekly_day=4, monthly_price=900)
        self.ivan, self.maria = enroll(self.group, 'Іван', 'Марія')
        (self.oleh,) = enroll(self.other_group, 'Олег')
        services.create_payment(self.ivan, self.group, OCTOBER, 1200, PaymentMethod.CASH, created_by=self.admin)
    
    def test_debts_report_for_admin(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:debts-report'), {'month': '2026-10'})
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['total_debt'], 2100)
        self.assertEqual(data['students_count'], 2)
        self.assertEqual([row['student_name'] for row in data['debtors']], ['Марія', 'Олег'])
    
    def test_debts_report_limited_to_teacher_groups(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(reverse('payment:debts-report'), {'month': '2026-10'})
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['student_name'] for row in response.data['data']['debtors']], ['Марія'])
    
    def test_debts_report_csv(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:debts-report') + '?month=2026-10&format=csv')
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('debts_report.csv', response['Content-Disposition'])
        lines = response.content.decode('utf-8').splitlines()
        self.assertEqual(
            lines[0],
            'student_id,student_name,phone,parent_name,parent_phone,group_title,monthly_price,paid_amount,debt'
        )
        self.assertEqual(len(lines), 3)
        self.assertIn('Марія', lines[1])
    
    def test_payments_report_admin_only(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(reverse('payment:payments-report'))
        
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
    
    def test_payments_report(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:payments-report'), {'start_month': '2026-10'})
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual(data['stats']['total_amount'], 1200)
        self.assertEqual(data['payments'][0]['student_name'], 'Іван')
        self.assertEqual(data['payments'][0]['created_by_name'], 'Анна Адміністратор')
    
    def test_payments_report_csv(self):
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:payments-report') + '?format=csv')
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        lines = response.content.decode('utf-8').splitlines()
        self.assertEqual(lines[0], 'id,month,student_name,group_title,amount,method,paid_at,note,created_by_name')
        self.assertEqual(len(lines), 2)
    
    def mark_lessons(self):
        schedule_service.generate_lessons_for_group(self.group.pk, weeks_ahead=2, today=MONDAY)
        first, second = Lesson.objects.filter(group=self.group).order_by('lesson_date')
        attendance_service.set_attendance(first.pk, self.ivan.pk, AttendanceStatus.PRESENT)
        attendance_service.set_attendance(second.pk, self.ivan.pk, AttendanceStatus.ABSENT)
        attendance_service.set_attendance(first.pk, self.maria.pk, AttendanceStatus.PRESENT)
    
    def test_attendance_report_for_teacher(self):
        self.mark_lessons()
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(reverse('payment:attendance-report'))
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        report = response.data['data']['report']
        self.assertEqual([row['student_name'] for row in report], ['Іван', 'Марія'])
        self.assertEqual(report[0]['attendance_rate'], 50)
        self.assertEqual(report[1]['attendance_rate'], 100)
    
    def test_attendance_report_for_student(self):
        self.mark_lessons()
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:attendance-report'), {'student': self.ivan.pk})
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data['data']['report'][0]
        self.assertEqual(row['total'], 2)
        self.assertEqual(row['present'], 1)
        self.assertEqual(row['absent'], 1)
    
    def test_attendance_report_hidden_group(self):
        authenticate(self.client, self.teacher_user)
        
        response = self.client.get(reverse('payment:attendance-report'), {'group': self.other_group.pk})
        
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_attendance_report_rejects_malformed_ids(self):
        authenticate(self.client, self.admin)

        response = self.client.get(reverse('payment:attendance-report'), {'group': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('group', response.data)

        response = self.client.get(reverse('payment:attendance-report'), {'student': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_attendance_report_csv(self):
        self.mark_lessons()
        authenticate(self.client, self.admin)
        
        response = self.client.get(reverse('payment:attendance-report') + f'?group={self.group.pk}&format=csv')
        
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        lines = response.content.decode('utf-8').splitlines()
        self.assertEqual(
            lines[0],
            'student_id,student_name,group_title,total,present,absent,makeup_planned,makeup_done,attendance_rate'
        )
        self.assertEqual(len(lines), 3)

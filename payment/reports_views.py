"""
Reports over attendance, payments and debts. Each report is returned as
the usual JSON envelope, or as a CSV download with ``?format=csv``.
"""
import logging

from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics
from rest_framework.exceptions import PermissionDenied
from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response

from education import attendance_service
from education.api.exceptions import StudentNotFoundError
from education.api.permissions import is_administrator, visible_groups
from education.api.serializers import DateRangeSerializer, id_filters
from education.models import Group
from payment import services
from payment.renderers import CSVRenderer
from payment.serializers import PaymentFilterSerializer
from payment.views import requested_month
from user.api.permissions import IsAdministrator, IsEmployee
from user.api.utils import success_response
from user.models import Student

logger = logging.getLogger(__name__)

FORMAT_PARAMETER = openapi.Parameter(
    'format', openapi.IN_QUERY, type=openapi.TYPE_STRING, enum=['json', 'csv'], description='Response format'
)


class ReportView(generics.GenericAPIView):
    renderer_classes = [JSONRenderer, CSVRenderer]
    csv_columns = []
    csv_filename = 'report.csv'
    
    def wants_csv(self, request):
        return getattr(request.accepted_renderer, 'format', None) == 'csv'
    
    def csv_response(self, rows):
        logger.info(f"Exporting {len(rows)} rows to {self.csv_filename}")
        return Response(rows, headers={'Content-Disposition': f'attachment; filename="{self.csv_filename}"'})


class AttendanceReportView(ReportView):
    permission_classes = [IsEmployee]
    csv_columns = [
        'student_id', 'student_name', 'group_title', 'total', 'present', 'absent',
        'makeup_planned', 'makeup_done', 'attendance_rate',
    ]
    csv_filename = 'attendance_report.csv'
    
    @swagger_auto_schema(
        operation_summary="Attendance Report",
        operation_description=(
            "Attendance statistics for one student, one group, or every group "
            "the user can see (teachers: only their own groups)"
        ),
        manual_parameters=[
            openapi.Parameter('student', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('group', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('start_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('end_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            FORMAT_PARAMETER,
        ],
        security=[{'Bearer': []}],
        tags=['Reports']
    )
    def get(self, request, *args, **kwargs):
        dates = DateRangeSerializer(data=request.query_params)
        dates.is_valid(raise_exception=True)
        start_date = dates.validated_data.get('start_date')
        end_date = dates.validated_data.get('end_date')
        
        groups = visible_groups(Group.objects.filter(is_active=True), request.user).order_by('title')
        filters = id_filters(request)
        group_id = filters.get('group')
        if group_id:
            group = visible_groups(Group.objects.all(), request.user).filter(pk=group_id).first()
            if group is None:
                raise PermissionDenied('Недостатньо прав доступу.')
            groups = [group]
        
        student_id = filters.get('student')
        if student_id:
            student = Student.objects.filter(pk=student_id).first()
            if student is None:
                raise StudentNotFoundError()
            stats = attendance_service.get_student_attendance_stats(
                student.pk, group_id=group_id, start_date=start_date, end_date=end_date
            )
            report = [{
                'student_id': student.pk,
                'student_name': student.full_name,
                'group_title': groups[0].title if group_id else None,
                **stats,
            }]
        else:
            report = []
            for group in groups:
                for row in attendance_service.get_group_attendance_stats(group.pk, start_date, end_date):
                    report.append({**row, 'group_id': group.pk, 'group_title': group.title})
        
        if self.wants_csv(request):
            return self.csv_response(report)
        return success_response(data={'report': report}, message='Звіт відвідуваності сформовано.')


class PaymentsReportView(ReportView):
    permission_classes = [IsAdministrator]
    csv_columns = [
        'id', 'month', 'student_name', 'group_title', 'amount', 'method', 'paid_at', 'note', 'created_by_name',
    ]
    csv_filename = 'payments_report.csv'
    
    @swagger_auto_schema(
        operation_summary="Payments Report",
        manual_parameters=[
            openapi.Parameter('start_month', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('end_month', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('group', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('course', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            FORMAT_PARAMETER,
        ],
        security=[{'Bearer': []}],
        tags=['Reports']
    )
    def get(self, request, *args, **kwargs):
        filters = PaymentFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        data = filters.validated_data
        group = data.get('group')
        params = {
            'start_month': data.get('start_month'),
            'end_month': data.get('end_month'),
            'group_id': group.pk if group else None,
            'course_id': data.get('course'),
        }
        
        rows = []
        for payment in services.get_payments_for_export(**params):
            employee = getattr(payment.created_by, 'employee_profile', None)
            rows.append({
                'id': payment.id,
                'month': payment.month.isoformat(),
                'student_name': payment.student.full_name,
                'group_title': payment.group.title,
                'amount': payment.amount,
                'method': payment.method,
                'paid_at': payment.paid_at,
                'note': payment.note,
                'created_by_name': employee.full_name if employee else payment.created_by.email,
            })
        
        if self.wants_csv(request):
            return self.csv_response(rows)
        return success_response(
            data={'stats': services.get_payment_stats(**params), 'payments': rows},
            message='Звіт оплат сформовано.'
        )


class DebtsReportView(ReportView):
    permission_classes = [IsEmployee]
    csv_columns = [
        'student_id', 'student_name', 'phone', 'parent_name', 'parent_phone',
        'group_title', 'monthly_price', 'paid_amount', 'debt',
    ]
    csv_filename = 'debts_report.csv'
    
    @swagger_auto_schema(
        operation_summary="Debts Report",
        operation_description="Students whose payments for the month do not cover the monthly price",
        manual_parameters=[
            openapi.Parameter('month', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            FORMAT_PARAMETER,
        ],
        security=[{'Bearer': []}],
        tags=['Reports']
    )
    def get(self, request, *args, **kwargs):
        month = requested_month(request)
        group_ids = None
        if not is_administrator(request.user):
            group_ids = list(visible_groups(Group.objects.all(), request.user).values_list('id', flat=True))
        
        debtors = services.get_students_with_debt(month, group_ids)
        if self.wants_csv(request):
            return self.csv_response(debtors)
        
        return success_response(
            data={
                'month': month.isoformat(),
                'total_debt': sum(row['debt'] for row in debtors),
                'students_count': len({row['student_id'] for row in debtors}),
                'debtors': debtors,
            },
            message='Звіт боргів сформовано.'
        )

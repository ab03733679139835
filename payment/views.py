import logging

from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status

from education.api.exceptions import GroupNotFoundError, StudentNotFoundError
from education.api.permissions import visible_groups
from education.models import Group
from payment import services
from payment.exceptions import PaymentNotFoundError
from payment.models import Payment
from payment.serializers import (
    MonthQuerySerializer,
    PaymentCreateSerializer,
    PaymentFilterSerializer,
    PaymentSerializer,
    PaymentUpdateSerializer,
)
from user.api.permissions import IsAdministrator, IsEmployee
from user.api.utils import success_response
from user.models import Student

logger = logging.getLogger(__name__)

MONTH_PARAMETER = openapi.Parameter(
    'month', openapi.IN_QUERY, type=openapi.TYPE_STRING, description='YYYY-MM (defaults to the current month)'
)


def requested_month(request):
    serializer = MonthQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data.get('month') or services.current_month()


class VisibleGroupMixin:
    def get_group(self):
        group = visible_groups(Group.objects.all(), self.request.user).filter(pk=self.kwargs['pk']).first()
        if group is None:
            raise GroupNotFoundError()
        return group


class GroupPaymentsView(VisibleGroupMixin, generics.GenericAPIView):
    """
    Payment status of a group's students for one month, and payment creation.
    """
    serializer_class = PaymentCreateSerializer
    permission_classes = [IsEmployee]
    
    @swagger_auto_schema(
        operation_summary="Group Payment Status",
        operation_description="Every active student of the group with total paid and debt for the month",
        manual_parameters=[MONTH_PARAMETER],
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def get(self, request, *args, **kwargs):
        group = self.get_group()
        month = requested_month(request)
        rows = services.get_payment_status_for_group_month(group.pk, month)
        return success_response(
            data={'month': month.isoformat(), 'monthly_price': group.monthly_price, 'students': rows},
            message='Оплати завантажено.'
        )
    
    @swagger_auto_schema(
        operation_summary="Create Payment",
        operation_description="Record a payment of a group member for a month (Administrator only)",
        request_body=PaymentCreateSerializer,
        responses={
            201: openapi.Response('Payment created', PaymentSerializer),
            400: openapi.Response('Validation errors'),
        },
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def post(self, request, *args, **kwargs):
        group = self.get_group()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = services.create_payment(
            data['student'],
            group,
            data['month'],
            data['amount'],
            data['method'],
            created_by=request.user,
            note=data.get('note'),
            paid_at=data.get('paid_at'),
        )
        return success_response(
            data=PaymentSerializer(payment).data,
            message='Оплату успішно створено.',
            status_code=status.HTTP_201_CREATED
        )


class GroupMonthPaymentsView(VisibleGroupMixin, generics.GenericAPIView):
    permission_classes = [IsEmployee]
    
    @swagger_auto_schema(
        operation_summary="Group Payments For Month",
        operation_description="Individual payment records of the group for the month, ordered by student",
        manual_parameters=[MONTH_PARAMETER],
        responses={200: openapi.Response('Payments retrieved', PaymentSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def get(self, request, *args, **kwargs):
        group = self.get_group()
        payments = services.get_payments_for_group_month(group.pk, requested_month(request))
        return success_response(data=PaymentSerializer(payments, many=True).data, message='Оплати завантажено.')


class PaymentDetailView(generics.GenericAPIView):
    permission_classes = [IsEmployee]
    serializer_class = PaymentUpdateSerializer
    
    def get_payment(self):
        groups = visible_groups(Group.objects.all(), self.request.user)
        payment = (
            Payment.objects
            .select_related('student', 'group')
            .filter(pk=self.kwargs['pk'], group__in=groups)
            .first()
        )
        if payment is None:
            raise PaymentNotFoundError()
        return payment
    
    @swagger_auto_schema(
        operation_summary="Get Payment",
        responses={200: openapi.Response('Payment retrieved', PaymentSerializer)},
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def get(self, request, *args, **kwargs):
        return success_response(data=PaymentSerializer(self.get_payment()).data, message='Оплату завантажено.')
    
    @swagger_auto_schema(
        operation_summary="Update Payment",
        request_body=PaymentUpdateSerializer,
        responses={200: openapi.Response('Payment updated', PaymentSerializer)},
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def put(self, request, *args, **kwargs):
        payment = self.get_payment()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        services.update_payment(
            payment,
            data['amount'],
            data['method'],
            note=data.get('note'),
            paid_at=data.get('paid_at'),
        )
        return success_response(data=PaymentSerializer(payment).data, message='Оплату успішно оновлено.')
    
    @swagger_auto_schema(
        operation_summary="Delete Payment",
        responses={200: openapi.Response('Payment deleted')},
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def delete(self, request, *args, **kwargs):
        services.delete_payment(self.get_payment())
        return success_response(message='Оплату успішно видалено.')


class PaymentStatsView(generics.GenericAPIView):
    permission_classes = [IsAdministrator]
    
    @swagger_auto_schema(
        operation_summary="Payment Statistics",
        operation_description="Totals by payment method for a month range, optionally per group or course",
        manual_parameters=[
            openapi.Parameter('start_month', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('end_month', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('group', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('course', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def get(self, request, *args, **kwargs):
        filters = PaymentFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        data = filters.validated_data
        group = data.get('group')
        stats = services.get_payment_stats(
            start_month=data.get('start_month'),
            end_month=data.get('end_month'),
            group_id=group.pk if group else None,
            course_id=data.get('course'),
        )
        return success_response(data=stats, message='Статистику оплат завантажено.')


class StudentPaymentsView(generics.GenericAPIView):
    permission_classes = [IsEmployee]
    
    @swagger_auto_schema(
        operation_summary="Student Payment History",
        responses={200: openapi.Response('Payments retrieved', PaymentSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Payments']
    )
    def get(self, request, *args, **kwargs):
        if not Student.objects.filter(pk=self.kwargs['pk']).exists():
            raise StudentNotFoundError()
        payments = services.get_student_payment_history(self.kwargs['pk'])
        return success_response(data=PaymentSerializer(payments, many=True).data, message='Оплати учня завантажено.')

"""
Payments and debts. A student's debt for a month is the group's monthly
price minus everything paid for that month, never below zero.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, ExpressionWrapper, F, IntegerField, OuterRef, Q, Subquery, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from education.models import Group, StudentGroup
from payment.exceptions import PaymentValidationError, StudentNotInGroupError
from payment.models import Payment, PaymentMethod, first_of_month

logger = logging.getLogger(__name__)


def current_month():
    return first_of_month(timezone.localdate())


def calculate_debt(monthly_price, total_paid) -> int:
    return max(0, (monthly_price or 0) - (total_paid or 0))


def _payment_row(payment):
    return {
        'id': payment.id,
        'amount': payment.amount,
        'method': payment.method,
        'paid_at': payment.paid_at,
        'note': payment.note,
    }


def get_payments_for_group_month(group_id, month):
    return list(
        Payment.objects
        .filter(group_id=group_id, month=first_of_month(month))
        .select_related('student', 'group', 'created_by')
        .order_by('student__full_name', 'paid_at')
    )


def get_payment_status_for_group_month(group_id, month):
    """One row per active student of the group with what they paid and still owe."""
    month = first_of_month(month)
    monthly_price = Group.objects.filter(pk=group_id).values_list('monthly_price', flat=True).first() or 0

    memberships = (
        StudentGroup.objects
        .filter(group_id=group_id, is_active=True, student__is_active=True)
        .select_related('student')
        .order_by('student__full_name')
    )
    payments_by_student = {}
    for payment in Payment.objects.filter(group_id=group_id, month=month).order_by('paid_at'):
        payments_by_student.setdefault(payment.student_id, []).append(payment)

    rows = []
    for membership in memberships:
        student = membership.student
        payments = payments_by_student.get(student.id, [])
        total_paid = sum(payment.amount for payment in payments)
        rows.append({
            'student_id': student.id,
            'student_name': student.full_name,
            'student_phone': student.phone,
            'parent_name': student.parent_name,
            'parent_phone': student.parent_phone,
            'monthly_price': monthly_price,
            'total_paid': total_paid,
            'debt': calculate_debt(monthly_price, total_paid),
            'payments': [_payment_row(payment) for payment in payments],
        })
    return rows


def _save(payment):
    try:
        payment.save()
    except DjangoValidationError as e:
        raise PaymentValidationError(e.message_dict)
    return payment


def create_payment(student, group, month, amount, method, created_by, note=None, paid_at=None) -> Payment:
    if not StudentGroup.objects.filter(student=student, group=group).exists():
        raise StudentNotInGroupError()

    payment = Payment(
        student=student,
        group=group,
        month=first_of_month(month),
        amount=amount,
        method=method,
        created_by=created_by,
        note=note or None,
        paid_at=paid_at or timezone.now(),
    )
    with transaction.atomic():
        _save(payment)
    logger.info(
        f"Payment {payment.pk} created: student {student.pk}, group {group.pk}, "
        f"{payment.month:%Y-%m}, {amount} ({method})"
    )
    return payment


def update_payment(payment, amount, method, note=None, paid_at=None) -> Payment:
    payment.amount = amount
    payment.method = method
    payment.note = note or None
    payment.paid_at = paid_at or timezone.now()
    with transaction.atomic():
        _save(payment)
    logger.info(f"Payment {payment.pk} updated")
    return payment


def delete_payment(payment):
    payment_id = payment.pk
    payment.delete()
    logger.info(f"Payment {payment_id} deleted")


def _filtered_payments(start_month=None, end_month=None, group_id=None, course_id=None):
    queryset = Payment.objects.all()
    if start_month:
        queryset = queryset.filter(month__gte=first_of_month(start_month))
    if end_month:
        queryset = queryset.filter(month__lte=first_of_month(end_month))
    if group_id:
        queryset = queryset.filter(group_id=group_id)
    if course_id:
        queryset = queryset.filter(group__course_id=course_id)
    return queryset


def get_payment_stats(start_month=None, end_month=None, group_id=None, course_id=None):
    zero = Value(0, output_field=IntegerField())
    return _filtered_payments(start_month, end_month, group_id, course_id).aggregate(
        total_amount=Coalesce(Sum('amount'), zero),
        cash_amount=Coalesce(Sum('amount', filter=Q(method=PaymentMethod.CASH)), zero),
        account_amount=Coalesce(Sum('amount', filter=Q(method=PaymentMethod.ACCOUNT)), zero),
        payments_count=Count('id'),
    )


def get_payments_for_export(start_month=None, end_month=None, group_id=None, course_id=None):
    return list(
        _filtered_payments(start_month, end_month, group_id, course_id)
        .select_related('student', 'group', 'created_by', 'created_by__employee_profile')
        .order_by('-month', 'student__full_name')
    )


def get_students_with_debt(month, group_ids=None):
    """
    Active memberships (active student, active group) whose payments for
    ``month`` do not cover the monthly price, largest debt first.
    """
    month = first_of_month(month)
    paid = (
        Payment.objects
        .filter(student_id=OuterRef('student_id'), group_id=OuterRef('group_id'), month=month)
        .values('student_id')
        .annotate(total=Sum('amount'))
        .values('total')
    )
    memberships = (
        StudentGroup.objects
        .filter(is_active=True, student__is_active=True, group__is_active=True)
        .select_related('student', 'group')
        .annotate(paid_amount=Coalesce(Subquery(paid, output_field=IntegerField()), Value(0)))
        .annotate(debt=ExpressionWrapper(F('group__monthly_price') - F('paid_amount'), output_field=IntegerField()))
        .filter(debt__gt=0)
        .order_by('-debt', 'student__full_name')
    )
    if group_ids is not None:
        memberships = memberships.filter(group_id__in=group_ids)

    return [
        {
            'student_id': membership.student_id,
            'student_name': membership.student.full_name,
            'phone': membership.student.phone,
            'parent_name': membership.student.parent_name,
            'parent_phone': membership.student.parent_phone,
            'group_id': membership.group_id,
            'group_title': membership.group.title,
            'month': month,
            'monthly_price': membership.group.monthly_price,
            'paid_amount': membership.paid_amount,
            'debt': membership.debt,
        }
        for membership in memberships
    ]


def get_total_debt_for_month(month, group_ids=None):
    debtors = get_students_with_debt(month, group_ids)
    return {
        'total_debt': sum(row['debt'] for row in debtors),
        'students_count': len({row['student_id'] for row in debtors}),
    }


def get_student_payment_history(student_id):
    return list(
        Payment.objects
        .filter(student_id=student_id)
        .select_related('group', 'created_by')
        .order_by('-month', '-paid_at')
    )

from datetime import date

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from user.models import BaseModel


def first_of_month(value: date) -> date:
    return value.replace(day=1)


class PaymentMethod(models.TextChoices):
    CASH = ('cash', 'Готівка')
    ACCOUNT = ('account', 'На рахунок')


class Payment(BaseModel):
    """
    Tuition payment of a student for one month of one group.
    Several payments per month are allowed (partial payments).
    """
    student = models.ForeignKey(
        'user.Student',
        on_delete=models.CASCADE,
        related_name='payments',
        verbose_name='Student'
    )
    group = models.ForeignKey(
        'education.Group',
        on_delete=models.CASCADE,
        related_name='payments',
        verbose_name='Group'
    )
    month = models.DateField(verbose_name='Month', help_text='First day of the paid month')
    amount = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        verbose_name='Amount',
        help_text='Amount in UAH'
    )
    method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        verbose_name='Method'
    )
    paid_at = models.DateTimeField(default=timezone.now, verbose_name='Paid At')
    note = models.TextField(null=True, blank=True, verbose_name='Note')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='created_payments',
        verbose_name='Created By'
    )

    class Meta:  # type: ignore
        db_table = 'payments'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-paid_at']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'group', 'month', 'method', 'paid_at'],
                name='unique_payment_entry'
            ),
        ]
        indexes = [
            models.Index(fields=['group', 'month'], name='payments_group_month_idx'),
            models.Index(fields=['student'], name='payments_student_idx'),
        ]

    def __str__(self):
        return f"{self.student} - {self.month:%Y-%m} - {self.amount} грн"

    def save(self, *args, **kwargs):
        if self.month:
            self.month = first_of_month(self.month)
        self.full_clean()
        super().save(*args, **kwargs)

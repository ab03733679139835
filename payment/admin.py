import csv

from django.contrib import admin
from django.http import HttpResponse
from django.utils.html import format_html
from django.urls import reverse
from payment.models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin interface for tuition payments.
    Payments are grouped by paid month; a month can have several partial payments.
    """
    list_display = [
        'id',
        'student_link',
        'group_link',
        'month_display',
        'amount_display',
        'method',
        'paid_at',
        'created_by',
    ]
    list_filter = [
        'method',
        'month',
        'paid_at',
        'group__course',
    ]
    search_fields = [
        'student__full_name',
        'student__phone',
        'group__title',
        'note',
        'id'
    ]
    readonly_fields = [
        'created_by',
        'created_at',
        'updated_at',
    ]
    autocomplete_fields = ['student', 'group']
    fieldsets = (
        ('Basic Information', {
            'fields': ('student', 'group', 'month', 'amount', 'method', 'note'),
            'description': 'The month is stored as its first day.'
        }),
        ('Audit', {
            'fields': ('paid_at', 'created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    date_hierarchy = 'paid_at'
    ordering = ['-paid_at']
    list_per_page = 50
    actions = ['export_payments']

    def student_link(self, obj):
        """Display student name as a link to student admin page."""
        if obj.student:
            url = reverse('admin:user_student_change', args=[obj.student.pk])
            return format_html('<a href="{}">{}</a>', url, obj.student.full_name)
        return '-'
    student_link.short_description = 'Student'
    student_link.admin_order_field = 'student__full_name'

    def group_link(self, obj):
        """Display group title as a link to group admin page."""
        if obj.group:
            url = reverse('admin:education_group_change', args=[obj.group.pk])
            return format_html('<a href="{}">{}</a>', url, obj.group.title)
        return '-'
    group_link.short_description = 'Group'
    group_link.admin_order_field = 'group__title'

    def month_display(self, obj):
        if not obj or not obj.month:
            return ''
        return obj.month.strftime('%Y-%m')
    month_display.short_description = 'Month'
    month_display.admin_order_field = 'month'

    def amount_display(self, obj):
        """Display amount with currency formatting."""
        if not obj:
            return ''
        formatted_amount = f"{obj.amount:,}".replace(',', ' ')
        return format_html('<strong>{} грн</strong>', formatted_amount)
    amount_display.short_description = 'Amount'
    amount_display.admin_order_field = 'amount'

    def get_queryset(self, request):
        """Optimize queryset with select_related."""
        queryset = super().get_queryset(request)
        return queryset.select_related('student', 'group', 'group__course', 'created_by')

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

    def export_payments(self, request, queryset):
        """Admin action to download selected payments as CSV."""
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = 'attachment; filename="payments.csv"'
        writer = csv.writer(response)
        writer.writerow(['id', 'student', 'group', 'month', 'amount', 'method', 'paid_at', 'note'])
        for payment in queryset.select_related('student', 'group'):
            writer.writerow([
                payment.id,
                payment.student.full_name,
                payment.group.title,
                payment.month.strftime('%Y-%m'),
                payment.amount,
                payment.get_method_display(),
                payment.paid_at.isoformat(),
                payment.note or '',
            ])
        return response
    export_payments.short_description = 'Export selected payments to CSV'

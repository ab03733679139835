from datetime import date, datetime

from rest_framework import serializers

from education.models import Group
from payment.models import Payment, PaymentMethod, first_of_month
from user.models import Student


class MonthField(serializers.Field):
    """Accepts ``YYYY-MM`` or any ``YYYY-MM-DD`` and stores the first day of that month."""
    default_error_messages = {
        'invalid': 'Невірний формат місяця. Використовуйте РРРР-ММ (наприклад, 2025-01).',
    }
    
    def to_internal_value(self, data):
        if isinstance(data, date):
            return first_of_month(data)
        value = str(data).strip()
        for fmt in ('%Y-%m', '%Y-%m-%d'):
            try:
                return first_of_month(datetime.strptime(value, fmt).date())
            except ValueError:
                continue
        self.fail('invalid')
    
    def to_representation(self, value):
        return value.isoformat()


class PaymentSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source='student.full_name', read_only=True)
    group_title = serializers.CharField(source='group.title', read_only=True)
    method_display = serializers.CharField(source='get_method_display', read_only=True)
    month = MonthField(read_only=True)
    
    class Meta:
        model = Payment
        fields = [
            'id', 'student', 'student_name', 'group', 'group_title', 'month',
            'amount', 'method', 'method_display', 'paid_at', 'note',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    student_id = serializers.PrimaryKeyRelatedField(queryset=Student.objects.all(), source='student')
    month = MonthField()
    amount = serializers.IntegerField(min_value=1, error_messages={'min_value': 'Сума має бути більшою за нуль.'})
    method = serializers.ChoiceField(choices=PaymentMethod.choices, error_messages={'invalid_choice': 'Невірний спосіб оплати.'})
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paid_at = serializers.DateTimeField(required=False, allow_null=True)


class PaymentUpdateSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1, error_messages={'min_value': 'Сума має бути більшою за нуль.'})
    method = serializers.ChoiceField(choices=PaymentMethod.choices, error_messages={'invalid_choice': 'Невірний спосіб оплати.'})
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    paid_at = serializers.DateTimeField(required=False, allow_null=True)


class MonthQuerySerializer(serializers.Serializer):
    month = MonthField(required=False)


class PaymentFilterSerializer(serializers.Serializer):
    start_month = MonthField(required=False)
    end_month = MonthField(required=False)
    group = serializers.PrimaryKeyRelatedField(queryset=Group.objects.all(), required=False)
    course = serializers.IntegerField(required=False)
    
    def validate(self, attrs):
        start_month, end_month = attrs.get('start_month'), attrs.get('end_month')
        if start_month and end_month and end_month < start_month:
            raise serializers.ValidationError({'end_month': 'Кінцевий місяць не може бути раніше початкового.'})
        return attrs

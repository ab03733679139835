from rest_framework import serializers
from user.models import Employee, Role


class TeacherSerializer(serializers.ModelSerializer):
    role_display = serializers.CharField(source='get_role_display', read_only=True)
    active_groups_count = serializers.SerializerMethodField()
    
    class Meta:
        model = Employee
        fields = [
            'id', 'public_id', 'full_name', 'role', 'role_display',
            'phone', 'telegram_id', 'photo_url', 'notes', 'is_active',
            'active_groups_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'public_id', 'role', 'is_active', 'created_at', 'updated_at']
    
    def get_active_groups_count(self, obj):
        annotated = getattr(obj, 'active_groups_count', None)
        if annotated is not None:
            return annotated
        return obj.groups.filter(is_active=True).count()
    
    def create(self, validated_data):
        validated_data['role'] = Role.TEACHER
        return super().create(validated_data)

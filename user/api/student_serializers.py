from rest_framework import serializers
from user.models import Student


class StudentListSerializer(serializers.ModelSerializer):
    source_display = serializers.CharField(source='get_source_display', read_only=True)
    
    class Meta:
        model = Student
        fields = [
            'id', 'public_id', 'full_name', 'phone', 'email',
            'parent_name', 'parent_phone', 'parent_relation',
            'birth_date', 'school', 'discount',
            'source', 'source_display', 'notes', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'public_id', 'is_active', 'created_at', 'updated_at']


class StudentDetailSerializer(StudentListSerializer):
    groups = serializers.SerializerMethodField()
    
    class Meta(StudentListSerializer.Meta):
        fields = StudentListSerializer.Meta.fields + ['groups']
    
    def get_groups(self, obj):
        memberships = obj.memberships.filter(is_active=True).select_related('group', 'group__course')
        return [
            {
                'membership_id': membership.id,
                'group_id': membership.group_id,
                'group_title': membership.group.title,
                'course_title': membership.group.course.title,
                'join_date': membership.join_date,
            }
            for membership in memberships
        ]


class StudentWriteSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(required=True, max_length=255)
    
    class Meta:
        model = Student
        fields = [
            'full_name', 'phone', 'email',
            'parent_name', 'parent_phone', 'parent_relation',
            'birth_date', 'school', 'discount', 'source', 'notes'
        ]
    
    def validate_full_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Ім'я учня обов'язкове.")
        return value

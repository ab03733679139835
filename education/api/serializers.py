from django.conf import settings
from rest_framework import serializers

from education.models import (
    AttendanceStatus,
    Course,
    Group,
    GroupHistory,
    GroupStatus,
    Lesson,
    LessonStatus,
    StudentGroup,
    start_time_validator,
)
from user.models import Employee, Role, Student


class CourseSerializer(serializers.ModelSerializer):
    groups_count = serializers.SerializerMethodField()
    students_count = serializers.SerializerMethodField()
    
    class Meta:
        model = Course
        fields = [
            'id', 'public_id', 'title', 'description', 'age_min',
            'duration_months', 'program', 'is_active',
            'groups_count', 'students_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'public_id', 'is_active', 'created_at', 'updated_at']
    
    def get_groups_count(self, obj):
        annotated = getattr(obj, 'groups_count', None)
        if annotated is not None:
            return annotated
        return obj.groups.filter(is_active=True).count()
    
    def get_students_count(self, obj):
        annotated = getattr(obj, 'students_count', None)
        if annotated is not None:
            return annotated
        return StudentGroup.objects.filter(
            group__course=obj, group__is_active=True, is_active=True
        ).values('student_id').distinct().count()
    
    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Назва курсу обов'язкова.")
        return value


class GroupSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title', read_only=True)
    teacher_name = serializers.CharField(source='teacher.full_name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    day_name = serializers.CharField(read_only=True)
    students_count = serializers.SerializerMethodField()
    
    class Meta:
        model = Group
        fields = [
            'id', 'public_id', 'title',
            'course', 'course_title', 'teacher', 'teacher_name',
            'weekly_day', 'day_name', 'start_time', 'duration_minutes', 'timezone',
            'start_date', 'end_date', 'capacity', 'monthly_price',
            'status', 'status_display', 'note', 'photos_folder_url', 'is_active',
            'students_count', 'created_at', 'updated_at'
        ]
        read_only_fields = fields
    
    def get_students_count(self, obj):
        annotated = getattr(obj, 'students_count', None)
        if annotated is not None:
            return annotated
        return obj.active_students_count


class GroupWriteSerializer(serializers.ModelSerializer):
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all())
    teacher = serializers.PrimaryKeyRelatedField(queryset=Employee.objects.all())
    weekly_day = serializers.IntegerField(
        min_value=1,
        max_value=7,
        error_messages={
            'min_value': 'День тижня має бути від 1 до 7',
            'max_value': 'День тижня має бути від 1 до 7',
        }
    )
    start_time = serializers.CharField(max_length=5, validators=[start_time_validator])
    
    class Meta:
        model = Group
        fields = [
            'course', 'teacher', 'weekly_day', 'start_time', 'duration_minutes', 'timezone',
            'start_date', 'end_date', 'capacity', 'monthly_price',
            'status', 'note', 'photos_folder_url'
        ]
    
    def validate_teacher(self, value):
        if value.role != Role.TEACHER:
            raise serializers.ValidationError('Обраний співробітник має бути викладачем.')
        if not value.is_active:
            raise serializers.ValidationError('Викладача деактивовано.')
        return value
    
    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date < start_date:
            raise serializers.ValidationError({
                'end_date': 'Дата завершення не може бути раніше дати початку.'
            })
        return attrs


class GroupStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=GroupStatus.choices)


class GroupMemberSerializer(serializers.ModelSerializer):
    student_id = serializers.IntegerField(source='student.id', read_only=True)
    public_id = serializers.CharField(source='student.public_id', read_only=True)
    full_name = serializers.CharField(source='student.full_name', read_only=True)
    phone = serializers.CharField(source='student.phone', read_only=True)
    parent_name = serializers.CharField(source='student.parent_name', read_only=True)
    parent_phone = serializers.CharField(source='student.parent_phone', read_only=True)
    
    class Meta:
        model = StudentGroup
        fields = [
            'id', 'student_id', 'public_id', 'full_name', 'phone',
            'parent_name', 'parent_phone', 'join_date', 'leave_date', 'is_active', 'notes'
        ]
        read_only_fields = fields


class AddStudentSerializer(serializers.Serializer):
    student_id = serializers.PrimaryKeyRelatedField(queryset=Student.objects.all(), source='student')
    join_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class GroupHistorySerializer(serializers.ModelSerializer):
    action_type_display = serializers.CharField(source='get_action_type_display', read_only=True)
    
    class Meta:
        model = GroupHistory
        fields = [
            'id', 'group', 'action_type', 'action_type_display', 'action_description',
            'old_value', 'new_value', 'user', 'user_name', 'created_at'
        ]
        read_only_fields = fields


class LessonSerializer(serializers.ModelSerializer):
    group_title = serializers.CharField(source='group.title', read_only=True)
    course_title = serializers.CharField(source='group.course.title', read_only=True)
    teacher_name = serializers.CharField(source='group.teacher.full_name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    duration_minutes = serializers.IntegerField(read_only=True)
    
    class Meta:
        model = Lesson
        fields = [
            'id', 'group', 'group_title', 'course_title', 'teacher_name',
            'lesson_date', 'start_datetime', 'end_datetime', 'duration_minutes',
            'topic', 'status', 'status_display', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class LessonUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=LessonStatus.choices,
        required=False,
        error_messages={'invalid_choice': 'Невірний статус'}
    )
    topic = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class LessonCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class LessonRescheduleSerializer(serializers.Serializer):
    new_date = serializers.DateField(error_messages={'required': 'Вкажіть нову дату'})
    new_time = serializers.CharField(required=False, allow_null=True, validators=[start_time_validator])
    keep_duration = serializers.BooleanField(required=False, default=False)


class GenerateLessonsSerializer(serializers.Serializer):
    weeks_ahead = serializers.IntegerField(required=False, min_value=1, max_value=52)
    
    def validate(self, attrs):
        attrs.setdefault('weeks_ahead', getattr(settings, 'LESSONS_WEEKS_AHEAD', 8))
        return attrs


class AttendanceSetSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    status = serializers.ChoiceField(
        choices=AttendanceStatus.choices,
        error_messages={'invalid_choice': 'Невірний статус'}
    )
    comment = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    makeup_lesson_id = serializers.IntegerField(required=False, allow_null=True)


class AttendanceBulkSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=AttendanceStatus.choices,
        error_messages={'invalid_choice': 'Невірний статус'}
    )


class DateRangeSerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)


class IdFilterSerializer(serializers.Serializer):
    """Optional numeric id filters read from the query string."""
    group = serializers.IntegerField(required=False, min_value=1)
    teacher = serializers.IntegerField(required=False, min_value=1)
    course = serializers.IntegerField(required=False, min_value=1)
    student = serializers.IntegerField(required=False, min_value=1)


def id_filters(request):
    filters = IdFilterSerializer(data=request.query_params)
    filters.is_valid(raise_exception=True)
    return filters.validated_data

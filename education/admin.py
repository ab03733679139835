from django.contrib import admin
from django.contrib import messages
from django.utils.html import format_html, mark_safe
from django.utils.translation import gettext_lazy as _
from rest_framework.exceptions import APIException

from education import schedule_service
from education.history_service import record_group_change
from .models import Attendance, Course, Group, GroupHistory, HistoryAction, Lesson, LessonStatus, StudentGroup


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    
    list_display = ('title', 'public_id', 'age_min', 'duration_months', 'groups_count', 'is_active', 'created_at')
    list_filter = ('is_active', 'created_at')
    search_fields = ('title', 'public_id', 'description')
    readonly_fields = ('public_id', 'created_at', 'updated_at')
    ordering = ('title',)
    
    fieldsets = (
        (_('Course Information'), {
            'fields': ('public_id', 'title', 'description', 'age_min', 'duration_months', 'program', 'is_active')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    
    def groups_count(self, obj):
        if not obj:
            return ''
        return obj.groups.filter(is_active=True).count()
    groups_count.short_description = 'Active Groups'


class StudentGroupInline(admin.TabularInline):
    model = StudentGroup
    extra = 0
    autocomplete_fields = ('student',)
    fields = ('student', 'join_date', 'leave_date', 'is_active', 'notes')


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    
    list_display = ('title', 'public_id', 'course', 'teacher_link', 'get_status_badge', 'students_count_display', 'monthly_price', 'is_active')
    list_filter = ('status', 'is_active', 'weekly_day', 'course', 'teacher')
    search_fields = ('title', 'public_id', 'course__title', 'teacher__full_name')
    readonly_fields = ('public_id', 'title', 'created_at', 'updated_at', 'teacher_link', 'students_count_display')
    ordering = ('weekly_day', 'start_time')
    date_hierarchy = 'start_date'
    autocomplete_fields = ('course', 'teacher')
    inlines = [StudentGroupInline]
    
    fieldsets = (
        (_('Group Information'), {
            'fields': ('public_id', 'title', 'course', 'status', 'is_active')
        }),
        (_('Schedule'), {
            'fields': ('weekly_day', 'start_time', 'duration_minutes', 'timezone', 'start_date', 'end_date')
        }),
        (_('Teacher Assignment'), {
            'fields': ('teacher', 'teacher_link')
        }),
        (_('Details'), {
            'fields': ('capacity', 'monthly_price', 'note', 'photos_folder_url', 'students_count_display')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    
    def get_status_badge(self, obj):
        if not obj:
            return ''
        colors = {
            'active': '#2ecc71',
            'graduate': '#3498db',
            'inactive': '#95a5a6',
        }
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            colors.get(obj.status, '#95a5a6'),
            obj.get_status_display()
        )
    get_status_badge.short_description = 'Status'
    
    def students_count_display(self, obj):
        if not obj or not obj.pk:
            return ''
        count = obj.active_students_count
        if obj.capacity:
            return f'{count} / {obj.capacity}'
        return str(count)
    students_count_display.short_description = 'Students'
    
    def teacher_link(self, obj):
        if not obj:
            return ''
        if obj.teacher_id:
            return format_html(
                '<a href="/admin/user/employee/{}/change/">{}</a>',
                obj.teacher.id,
                obj.teacher.full_name
            )
        return mark_safe('<span style="color: #999;">No teacher assigned</span>')
    teacher_link.short_description = 'Teacher'
    
    def get_queryset(self, request):
        queryset = super().get_queryset(request)
        return queryset.select_related('course', 'teacher')
    
    def save_model(self, request, obj, form, change):
        if change:
            action = HistoryAction.EDITED
            description = 'Змінено через адмін-панель: ' + ', '.join(form.changed_data)
        else:
            action = HistoryAction.CREATED
            description = lambda saved: f'Створено групу: {saved.title}'
        
        def mutate():
            super(GroupAdmin, self).save_model(request, obj, form, change)
            return obj
        
        if change and not form.changed_data:
            mutate()
            return
        record_group_change(obj, request.user, action, description, mutate)
    
    actions = ['generate_lessons']
    
    @admin.action(description='Generate lessons for selected groups')
    def generate_lessons(self, request, queryset):
        generated = 0
        for group in queryset:
            try:
                generated += schedule_service.generate_lessons_for_group(group.pk, created_by=request.user)['generated']
            except APIException as e:
                self.message_user(request, f'{group.title}: {e}', level=messages.ERROR)
        self.message_user(
            request,
            f'Successfully generated {generated} lesson(s).',
            level=messages.SUCCESS
        )


@admin.register(Lesson)
class LessonAdmin(admin.ModelAdmin):
    
    list_display = ('lesson_date', 'group', 'start_datetime', 'end_datetime', 'status', 'topic', 'attendance_count')
    list_filter = ('status', 'lesson_date', 'group__course')
    search_fields = ('group__title', 'topic')
    readonly_fields = ('created_by', 'created_at', 'updated_at')
    ordering = ('-lesson_date',)
    date_hierarchy = 'lesson_date'
    autocomplete_fields = ('group',)
    actions = ['cancel_lessons']
    
    def attendance_count(self, obj):
        if not obj or not obj.pk:
            return ''
        return obj.attendance_records.count()
    attendance_count.short_description = 'Attendance'
    
    def get_queryset(self, request):
        queryset = super().get_queryset(request)
        return queryset.select_related('group')
    
    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)
    
    @admin.action(description='Cancel selected lessons')
    def cancel_lessons(self, request, queryset):
        canceled = 0
        for lesson in queryset.exclude(status=LessonStatus.CANCELED):
            schedule_service.cancel_lesson(lesson, actor=request.user)
            canceled += 1
        self.message_user(request, f'{canceled} lesson(s) canceled.', level=messages.SUCCESS)


@admin.register(Attendance)
class AttendanceAdmin(admin.ModelAdmin):
    
    list_display = ('lesson', 'student', 'status', 'makeup_lesson', 'updated_by', 'updated_at')
    list_filter = ('status', 'lesson__lesson_date', 'lesson__group')
    search_fields = ('student__full_name', 'lesson__group__title', 'comment')
    readonly_fields = ('updated_by', 'created_at', 'updated_at')
    autocomplete_fields = ('lesson', 'student', 'makeup_lesson')
    ordering = ('-lesson__lesson_date',)
    
    def get_queryset(self, request):
        queryset = super().get_queryset(request)
        return queryset.select_related('lesson', 'lesson__group', 'student', 'makeup_lesson', 'updated_by')
    
    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(GroupHistory)
class GroupHistoryAdmin(admin.ModelAdmin):
    
    list_display = ('created_at', 'group', 'action_type', 'action_description', 'user_name')
    list_filter = ('action_type', 'created_at')
    search_fields = ('group__title', 'action_description', 'user_name')
    ordering = ('-created_at', '-id')
    
    def has_add_permission(self, request):
        return False
    
    def has_change_permission(self, request, obj=None):
        return False
    
    def has_delete_permission(self, request, obj=None):
        return False

import logging
from datetime import timedelta

from django.utils import timezone
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status

from education import attendance_service, schedule_service
from education.api.exceptions import GroupNotFoundError, StudentNotFoundError
from education.api.permissions import CanAccessGroup, employee_of, is_administrator, visible_groups
from education.api.serializers import (
    AttendanceBulkSerializer,
    AttendanceSetSerializer,
    DateRangeSerializer,
    GenerateLessonsSerializer,
    LessonCancelSerializer,
    LessonRescheduleSerializer,
    LessonSerializer,
    LessonUpdateSerializer,
    id_filters,
)
from education.models import Group, Lesson
from user.api.permissions import IsAdministrator, IsEmployee
from user.api.utils import success_response
from user.models import Student

logger = logging.getLogger(__name__)

LESSON_TAGS = ['Lessons']
ATTENDANCE_TAGS = ['Attendance']


def lesson_queryset():
    return Lesson.objects.select_related('group', 'group__course', 'group__teacher')


class GroupScopedMixin:
    """Resolve ``pk`` to a group the requesting user may see."""
    
    def get_group(self):
        group = visible_groups(Group.objects.all(), self.request.user).filter(pk=self.kwargs['pk']).first()
        if group is None:
            raise GroupNotFoundError()
        return group


class GroupLessonsView(GroupScopedMixin, generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    
    @swagger_auto_schema(
        operation_summary="Group Lessons",
        manual_parameters=[
            openapi.Parameter('start_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('end_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
        ],
        responses={200: openapi.Response('Lessons retrieved', LessonSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def get(self, request, *args, **kwargs):
        group = self.get_group()
        dates = DateRangeSerializer(data=request.query_params)
        dates.is_valid(raise_exception=True)
        lessons = schedule_service.get_lessons_for_group(
            group.pk,
            start_date=dates.validated_data.get('start_date'),
            end_date=dates.validated_data.get('end_date'),
        )
        return success_response(data=LessonSerializer(lessons, many=True).data, message='Заняття завантажено.')


class GenerateLessonsView(generics.GenericAPIView):
    serializer_class = GenerateLessonsSerializer
    permission_classes = [IsAdministrator]
    
    @swagger_auto_schema(
        operation_summary="Generate Lessons",
        operation_description="Create the missing weekly lessons of the group for the next weeks",
        request_body=GenerateLessonsSerializer,
        responses={
            200: openapi.Response('Lessons generated'),
            400: openapi.Response('Malformed weekly rule'),
            404: openapi.Response('Group not found'),
        },
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = schedule_service.generate_lessons_for_group(
            self.kwargs['pk'],
            serializer.validated_data['weeks_ahead'],
            created_by=request.user,
        )
        return success_response(data=result, message='Заняття успішно згенеровано.')


class GenerateAllLessonsView(generics.GenericAPIView):
    serializer_class = GenerateLessonsSerializer
    permission_classes = [IsAdministrator]
    
    @swagger_auto_schema(
        operation_summary="Generate Lessons For All Groups",
        operation_description="Run lesson generation for every active group; failures are reported per group",
        request_body=GenerateLessonsSerializer,
        responses={200: openapi.Response('Batch summary')},
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        summary = schedule_service.generate_lessons_for_all_groups(
            serializer.validated_data['weeks_ahead'],
            created_by=request.user,
        )
        return success_response(data=summary, message='Заняття успішно згенеровано.')


class ScheduleView(generics.GenericAPIView):
    permission_classes = [IsEmployee]
    
    @swagger_auto_schema(
        operation_summary="Schedule",
        operation_description="Lessons across groups in a date range (defaults to the current week)",
        manual_parameters=[
            openapi.Parameter('start_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('end_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('group', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('teacher', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('course', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: openapi.Response('Lessons retrieved', LessonSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def get(self, request, *args, **kwargs):
        dates = DateRangeSerializer(data=request.query_params)
        dates.is_valid(raise_exception=True)
        today = timezone.localdate()
        start_date = dates.validated_data.get('start_date') or today - timedelta(days=today.weekday())
        end_date = dates.validated_data.get('end_date') or start_date + timedelta(days=6)
        
        filters = id_filters(request)
        teacher_id = filters.get('teacher')
        if not is_administrator(request.user):
            teacher_id = employee_of(request.user).pk
        
        lessons = schedule_service.get_lessons_in_range(
            start_date,
            end_date,
            group_id=filters.get('group'),
            teacher_id=teacher_id,
            course_id=filters.get('course'),
        )
        return success_response(data=LessonSerializer(lessons, many=True).data, message='Розклад завантажено.')


class UpcomingLessonsView(generics.GenericAPIView):
    permission_classes = [IsEmployee]
    
    @swagger_auto_schema(
        operation_summary="Upcoming Lessons",
        manual_parameters=[openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER)],
        responses={200: openapi.Response('Lessons retrieved', LessonSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def get(self, request, *args, **kwargs):
        limit = request.query_params.get('limit')
        limit = int(limit) if limit and limit.isdecimal() else 10
        teacher_id = None if is_administrator(request.user) else employee_of(request.user).pk
        lessons = schedule_service.get_upcoming_lessons(limit=limit, teacher_id=teacher_id)
        return success_response(data=LessonSerializer(lessons, many=True).data, message='Заняття завантажено.')


class LessonDetailView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    serializer_class = LessonUpdateSerializer
    
    def get_queryset(self):
        return lesson_queryset()
    
    @swagger_auto_schema(
        operation_summary="Get Lesson",
        responses={200: openapi.Response('Lesson retrieved', LessonSerializer)},
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def get(self, request, *args, **kwargs):
        return success_response(data=LessonSerializer(self.get_object()).data, message='Заняття завантажено.')
    
    @swagger_auto_schema(
        operation_summary="Update Lesson",
        operation_description="Change status and/or topic. Marking a lesson done writes a group history entry.",
        request_body=LessonUpdateSerializer,
        responses={200: openapi.Response('Lesson updated', LessonSerializer)},
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def patch(self, request, *args, **kwargs):
        lesson = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        
        if 'topic' in data:
            schedule_service.update_lesson_topic(lesson, data['topic'])
        if 'status' in data and data['status'] != lesson.status:
            schedule_service.set_lesson_status(lesson, data['status'], actor=request.user)
        
        return success_response(data=LessonSerializer(lesson).data, message='Заняття оновлено.')
    
    @swagger_auto_schema(
        operation_summary="Delete Lesson",
        responses={
            200: openapi.Response('Lesson deleted'),
            409: openapi.Response('Lesson has attendance records'),
        },
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def delete(self, request, *args, **kwargs):
        lesson = self.get_object()
        if not is_administrator(request.user):
            self.permission_denied(request, message='Видаляти заняття може лише адміністратор.')
        schedule_service.delete_lesson(lesson)
        return success_response(message='Заняття видалено.')


class LessonCancelView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    serializer_class = LessonCancelSerializer
    
    def get_queryset(self):
        return lesson_queryset()
    
    @swagger_auto_schema(
        operation_summary="Cancel Lesson",
        request_body=LessonCancelSerializer,
        responses={
            200: openapi.Response('Lesson canceled', LessonSerializer),
            400: openapi.Response('Lesson already canceled'),
        },
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def post(self, request, *args, **kwargs):
        lesson = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        schedule_service.cancel_lesson(lesson, actor=request.user, reason=serializer.validated_data.get('reason'))
        return success_response(data=LessonSerializer(lesson).data, message='Заняття скасовано.')


class LessonRescheduleView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    serializer_class = LessonRescheduleSerializer
    
    def get_queryset(self):
        return lesson_queryset()
    
    @swagger_auto_schema(
        operation_summary="Reschedule Lesson",
        request_body=LessonRescheduleSerializer,
        responses={
            200: openapi.Response('Lesson rescheduled', LessonSerializer),
            409: openapi.Response('The group already has a lesson on that date'),
        },
        security=[{'Bearer': []}],
        tags=LESSON_TAGS
    )
    def post(self, request, *args, **kwargs):
        lesson = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        schedule_service.reschedule_lesson(
            lesson,
            data['new_date'],
            new_time=data.get('new_time'),
            keep_duration=data.get('keep_duration', False),
        )
        return success_response(data=LessonSerializer(lesson).data, message='Заняття перенесено.')


class LessonAttendanceView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    serializer_class = AttendanceSetSerializer
    
    def get_queryset(self):
        return lesson_queryset()
    
    @swagger_auto_schema(
        operation_summary="Lesson Attendance",
        operation_description="Every active student of the group with their attendance for this lesson (null when not marked)",
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def get(self, request, *args, **kwargs):
        lesson = self.get_object()
        rows = attendance_service.get_attendance_for_lesson_with_students(lesson.pk)
        return success_response(data=rows, message='Відвідуваність завантажено.')
    
    @swagger_auto_schema(
        operation_summary="Set Attendance",
        request_body=AttendanceSetSerializer,
        responses={200: openapi.Response('Attendance saved')},
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def post(self, request, *args, **kwargs):
        lesson = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        attendance_id = attendance_service.set_attendance(
            lesson.pk,
            data['student_id'],
            data['status'],
            updated_by=request.user,
            comment=data.get('comment'),
            makeup_lesson_id=data.get('makeup_lesson_id'),
        )
        return success_response(data={'id': attendance_id}, message='Відвідуваність збережено.')
    
    @swagger_auto_schema(
        operation_summary="Clear Attendance",
        operation_description="Delete every attendance record of the lesson",
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def delete(self, request, *args, **kwargs):
        lesson = self.get_object()
        deleted = attendance_service.clear_attendance_for_lesson(lesson.pk)
        return success_response(data={'deleted': deleted}, message='Відвідуваність очищено.')


class LessonAttendanceBulkView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    serializer_class = AttendanceBulkSerializer
    
    def get_queryset(self):
        return lesson_queryset()
    
    @swagger_auto_schema(
        operation_summary="Set Attendance For All",
        operation_description="Apply one status to every active student of the group, all or nothing",
        request_body=AttendanceBulkSerializer,
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def post(self, request, *args, **kwargs):
        lesson = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = attendance_service.set_attendance_for_all(
            lesson.pk, serializer.validated_data['status'], updated_by=request.user
        )
        return success_response(data={'updated': updated}, message='Відвідуваність збережено.')


class LessonAttendanceCopyView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    
    def get_queryset(self):
        return lesson_queryset()
    
    @swagger_auto_schema(
        operation_summary="Copy Attendance From Previous Lesson",
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def post(self, request, *args, **kwargs):
        lesson = self.get_object()
        result = attendance_service.copy_attendance_from_previous_lesson(lesson.pk, updated_by=request.user)
        return success_response(data=result, message='Відвідуваність скопійовано.')


class GroupAttendanceStatsView(GroupScopedMixin, generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    
    @swagger_auto_schema(
        operation_summary="Group Attendance Statistics",
        manual_parameters=[
            openapi.Parameter('start_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
            openapi.Parameter('end_date', openapi.IN_QUERY, type=openapi.TYPE_STRING, format='date'),
        ],
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def get(self, request, *args, **kwargs):
        group = self.get_group()
        dates = DateRangeSerializer(data=request.query_params)
        dates.is_valid(raise_exception=True)
        stats = attendance_service.get_group_attendance_stats(
            group.pk,
            start_date=dates.validated_data.get('start_date'),
            end_date=dates.validated_data.get('end_date'),
        )
        return success_response(data=stats, message='Статистику завантажено.')


class StudentAttendanceView(generics.GenericAPIView):
    permission_classes = [IsEmployee]
    
    @swagger_auto_schema(
        operation_summary="Student Attendance",
        operation_description="Attendance history and statistics of a student",
        manual_parameters=[
            openapi.Parameter('group', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        security=[{'Bearer': []}],
        tags=ATTENDANCE_TAGS
    )
    def get(self, request, *args, **kwargs):
        student = Student.objects.filter(pk=self.kwargs['pk']).first()
        if student is None:
            raise StudentNotFoundError()
        group_id = id_filters(request).get('group')
        limit = request.query_params.get('limit')
        limit = int(limit) if limit and limit.isdecimal() else 50
        return success_response(
            data={
                'stats': attendance_service.get_student_attendance_stats(student.pk, group_id=group_id),
                'history': attendance_service.get_student_attendance_history(
                    student.pk, group_id=group_id, limit=limit
                ),
            },
            message='Відвідуваність учня завантажено.',
            status_code=status.HTTP_200_OK
        )

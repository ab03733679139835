import logging

from django.db import transaction
from django.db.models import Count, Q
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, status

from education.api.exceptions import GroupNotFoundError
from education.api.permissions import CanAccessGroup, visible_groups
from education.api.serializers import (
    AddStudentSerializer,
    CourseSerializer,
    GroupHistorySerializer,
    GroupMemberSerializer,
    GroupSerializer,
    GroupStatusSerializer,
    GroupWriteSerializer,
    id_filters,
)
from education import group_service
from education.history_service import get_group_history
from education.models import Course, Group, StudentGroup
from user.api.permissions import IsAdministrator, IsEmployee
from user.api.utils import success_response, error_response
from user.models import Student

logger = logging.getLogger(__name__)


def query_flag(request, name) -> bool:
    return request.query_params.get(name) in ('1', 'true', 'True')


def courses_with_counts():
    return Course.objects.annotate(
        groups_count=Count('groups', filter=Q(groups__is_active=True), distinct=True),
        students_count=Count(
            'groups__memberships__student',
            filter=Q(groups__is_active=True, groups__memberships__is_active=True),
            distinct=True,
        ),
    )


def groups_with_details():
    return Group.objects.select_related('course', 'teacher').annotate(
        students_count=Count('memberships', filter=Q(memberships__is_active=True), distinct=True)
    )


class CourseListView(generics.ListCreateAPIView):
    serializer_class = CourseSerializer
    permission_classes = [IsEmployee]
    
    def get_queryset(self):
        queryset = courses_with_counts()
        if not query_flag(self.request, 'include_inactive'):
            queryset = queryset.filter(is_active=True)
        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(description__icontains=search))
        return queryset.order_by('title')
    
    @swagger_auto_schema(
        operation_summary="List Courses",
        operation_description="List courses with their active group and student counts",
        manual_parameters=[
            openapi.Parameter('search', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('include_inactive', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
        ],
        responses={200: openapi.Response('Courses retrieved successfully', CourseSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Courses']
    )
    def get(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        
        serializer = self.get_serializer(queryset, many=True)
        return success_response(data=serializer.data, message='Курси успішно завантажено.')
    
    @swagger_auto_schema(
        operation_summary="Create Course",
        operation_description="Create a course (Administrator only)",
        request_body=CourseSerializer,
        responses={
            201: openapi.Response('Course created successfully', CourseSerializer),
            400: openapi.Response('Validation errors'),
        },
        security=[{'Bearer': []}],
        tags=['Courses']
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        
        with transaction.atomic():
            course = serializer.save()
        
        logger.info(f"Course {course.public_id} created")
        return success_response(
            data=self.get_serializer(course).data,
            message='Курс успішно створено.',
            status_code=status.HTTP_201_CREATED
        )


class CourseRetrieveUpdateView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = CourseSerializer
    permission_classes = [IsEmployee]
    
    def get_queryset(self):
        return courses_with_counts()
    
    @swagger_auto_schema(
        operation_summary="Get Course",
        responses={200: openapi.Response('Course retrieved successfully', CourseSerializer)},
        security=[{'Bearer': []}],
        tags=['Courses']
    )
    def get(self, request, *args, **kwargs):
        return success_response(
            data=self.get_serializer(self.get_object()).data,
            message='Курс успішно завантажено.'
        )
    
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        
        with transaction.atomic():
            course = serializer.save()
            # group titles embed the course title
            for group in course.groups.all():
                group.save()
        
        return success_response(
            data=self.get_serializer(self.get_object()).data,
            message='Курс успішно оновлено.'
        )
    
    @swagger_auto_schema(
        operation_summary="Delete Course",
        operation_description="Delete a course together with all of its groups (Administrator only)",
        responses={200: openapi.Response('Course deleted successfully')},
        security=[{'Bearer': []}],
        tags=['Courses']
    )
    def delete(self, request, *args, **kwargs):
        course = self.get_object()
        public_id = course.public_id
        with transaction.atomic():
            deleted_groups = course.groups.count()
            course.groups.all().delete()
            course.delete()
        logger.info(f"Course {public_id} deleted with {deleted_groups} groups")
        return success_response(message='Курс успішно видалено.')


class CourseArchiveView(generics.GenericAPIView):
    queryset = Course.objects.all()
    permission_classes = [IsAdministrator]
    archive = True
    
    @swagger_auto_schema(
        operation_summary="Archive / Restore Course",
        responses={200: openapi.Response('Course updated', CourseSerializer)},
        security=[{'Bearer': []}],
        tags=['Courses']
    )
    def post(self, request, *args, **kwargs):
        course = self.get_object()
        course.is_active = not self.archive
        course.save()
        return success_response(
            data=CourseSerializer(course).data,
            message='Курс архівовано.' if self.archive else 'Курс відновлено.'
        )


class CourseGroupsView(generics.ListAPIView):
    serializer_class = GroupSerializer
    permission_classes = [IsEmployee]
    pagination_class = None
    
    def get_queryset(self):
        queryset = groups_with_details().filter(course_id=self.kwargs['pk'])
        if not query_flag(self.request, 'include_inactive'):
            queryset = queryset.filter(is_active=True)
        return visible_groups(queryset, self.request.user).order_by('weekly_day', 'start_time')
    
    @swagger_auto_schema(
        operation_summary="Course Groups",
        responses={200: openapi.Response('Groups retrieved successfully', GroupSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Courses']
    )
    def get(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return success_response(data=serializer.data, message='Групи курсу завантажено.')


class GroupListView(generics.ListCreateAPIView):
    permission_classes = [IsEmployee]
    
    def get_serializer_class(self):  # type: ignore
        if self.request.method == 'POST':
            return GroupWriteSerializer
        return GroupSerializer
    
    def get_queryset(self):
        params = self.request.query_params
        filters = id_filters(self.request)
        queryset = groups_with_details()
        
        if not query_flag(self.request, 'include_inactive'):
            queryset = queryset.filter(is_active=True)
        if filters.get('course'):
            queryset = queryset.filter(course_id=filters['course'])
        if filters.get('teacher'):
            queryset = queryset.filter(teacher_id=filters['teacher'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('days'):
            days = [int(day) for day in params['days'].split(',') if day.strip().isdecimal()]
            if days:
                queryset = queryset.filter(weekly_day__in=days)
        search = params.get('search')
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(course__title__icontains=search))
        
        return visible_groups(queryset, self.request.user).order_by('-created_at')
    
    @swagger_auto_schema(
        operation_summary="List Groups",
        operation_description="List groups with course title, teacher name and active student count",
        manual_parameters=[
            openapi.Parameter('course', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('teacher', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('days', openapi.IN_QUERY, type=openapi.TYPE_STRING, description='Comma-separated ISO weekdays'),
            openapi.Parameter('search', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('include_inactive', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
        ],
        responses={200: openapi.Response('Groups retrieved successfully', GroupSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def get(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        
        serializer = self.get_serializer(queryset, many=True)
        return success_response(data=serializer.data, message='Групи успішно завантажено.')
    
    @swagger_auto_schema(
        operation_summary="Create Group",
        operation_description="Create a group; the title is generated from weekday, time and course",
        request_body=GroupWriteSerializer,
        responses={
            201: openapi.Response('Group created successfully', GroupSerializer),
            400: openapi.Response('Validation errors'),
        },
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = group_service.create_group(serializer.validated_data, actor=request.user)
        return success_response(
            data=GroupSerializer(group).data,
            message='Групу успішно створено.',
            status_code=status.HTTP_201_CREATED
        )


class GroupRetrieveUpdateView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsEmployee]
    
    def get_queryset(self):
        return visible_groups(groups_with_details(), self.request.user)
    
    def get_serializer_class(self):  # type: ignore
        if self.request.method in ['PUT', 'PATCH']:
            return GroupWriteSerializer
        return GroupSerializer
    
    @swagger_auto_schema(
        operation_summary="Get Group",
        responses={
            200: openapi.Response('Group retrieved successfully', GroupSerializer),
            404: openapi.Response('Group not found'),
        },
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def get(self, request, *args, **kwargs):
        return success_response(
            data=GroupSerializer(self.get_object()).data,
            message='Групу успішно завантажено.'
        )
    
    @swagger_auto_schema(
        operation_summary="Update Group",
        operation_description="Update a group; each changed field is written to the group history",
        request_body=GroupWriteSerializer,
        responses={
            200: openapi.Response('Group updated successfully', GroupSerializer),
            400: openapi.Response('Validation errors'),
        },
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def patch(self, request, *args, **kwargs):
        return super().patch(request, *args, **kwargs)
    
    @swagger_auto_schema(
        operation_summary="Update Group",
        operation_description="Update a group; each changed field is written to the group history",
        request_body=GroupWriteSerializer,
        responses={
            200: openapi.Response('Group updated successfully', GroupSerializer),
            400: openapi.Response('Validation errors'),
        },
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def put(self, request, *args, **kwargs):
        return super().put(request, *args, **kwargs)
    
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        
        group_service.update_group(instance, dict(serializer.validated_data), actor=request.user)
        
        return success_response(
            data=GroupSerializer(self.get_object()).data,
            message='Групу успішно оновлено.'
        )
    
    @swagger_auto_schema(
        operation_summary="Delete Group",
        operation_description="Delete a group. Refused with 409 while it has students, lessons or payments.",
        responses={
            200: openapi.Response('Group deleted successfully'),
            409: openapi.Response('Group has linked students, lessons or payments'),
        },
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def delete(self, request, *args, **kwargs):
        group_service.delete_group(self.get_object())
        return success_response(message='Групу успішно видалено.')


class GroupDependenciesView(generics.GenericAPIView):
    permission_classes = [IsAdministrator]
    queryset = Group.objects.all()
    
    @swagger_auto_schema(
        operation_summary="Group Deletion Check",
        operation_description="Counts of memberships, lessons and payments that block deletion",
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def get(self, request, *args, **kwargs):
        dependencies = group_service.group_dependencies(self.get_object())
        return success_response(
            data={'can_delete': not any(dependencies.values()), **dependencies},
            message='Перевірку виконано.'
        )


class GroupStatusView(generics.GenericAPIView):
    serializer_class = GroupStatusSerializer
    permission_classes = [IsAdministrator]
    queryset = Group.objects.select_related('course', 'teacher')
    
    @swagger_auto_schema(
        operation_summary="Change Group Status",
        request_body=GroupStatusSerializer,
        responses={200: openapi.Response('Status updated', GroupSerializer)},
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def post(self, request, *args, **kwargs):
        group = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group_service.update_group_status(group, serializer.validated_data['status'], actor=request.user)
        return success_response(data=GroupSerializer(group).data, message='Статус групи оновлено.')


class GroupArchiveView(generics.GenericAPIView):
    permission_classes = [IsAdministrator]
    queryset = Group.objects.select_related('course', 'teacher')
    archive = True
    
    @swagger_auto_schema(
        operation_summary="Archive / Restore Group",
        responses={200: openapi.Response('Group updated', GroupSerializer)},
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def post(self, request, *args, **kwargs):
        group = self.get_object()
        group_service.set_group_active(group, not self.archive, actor=request.user)
        return success_response(
            data=GroupSerializer(group).data,
            message='Групу архівовано.' if self.archive else 'Групу відновлено.'
        )


class GroupStudentsView(generics.GenericAPIView):
    permission_classes = [IsEmployee]
    serializer_class = AddStudentSerializer
    
    def get_group(self):
        group = visible_groups(Group.objects.all(), self.request.user).filter(pk=self.kwargs['pk']).first()
        if group is None:
            raise GroupNotFoundError()
        return group
    
    @swagger_auto_schema(
        operation_summary="Group Students",
        operation_description="Active members of the group ordered by name",
        responses={200: openapi.Response('Students retrieved', GroupMemberSerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def get(self, request, *args, **kwargs):
        group = self.get_group()
        memberships = (
            StudentGroup.objects
            .filter(group=group, is_active=True)
            .select_related('student')
            .order_by('student__full_name')
        )
        return success_response(
            data=GroupMemberSerializer(memberships, many=True).data,
            message='Учнів групи завантажено.'
        )
    
    @swagger_auto_schema(
        operation_summary="Add Student To Group",
        request_body=AddStudentSerializer,
        responses={
            201: openapi.Response('Student added', GroupMemberSerializer),
            409: openapi.Response('Student already in group'),
        },
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def post(self, request, *args, **kwargs):
        group = self.get_group()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = group_service.add_student_to_group(
            group,
            serializer.validated_data['student'],
            actor=request.user,
            join_date=serializer.validated_data.get('join_date'),
            notes=serializer.validated_data.get('notes'),
        )
        return success_response(
            data=GroupMemberSerializer(membership).data,
            message='Учня успішно додано до групи.',
            status_code=status.HTTP_201_CREATED
        )


class GroupStudentRemoveView(generics.GenericAPIView):
    permission_classes = [IsAdministrator]
    
    @swagger_auto_schema(
        operation_summary="Remove Student From Group",
        operation_description="Soft removal: the membership is closed with today's leave date",
        responses={200: openapi.Response('Student removed', GroupMemberSerializer)},
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def delete(self, request, *args, **kwargs):
        group = Group.objects.filter(pk=self.kwargs['pk']).first()
        if group is None:
            raise GroupNotFoundError()
        student = Student.objects.filter(pk=self.kwargs['student_id']).first()
        if student is None:
            return error_response('Учня не знайдено.', status_code=status.HTTP_404_NOT_FOUND)
        membership = group_service.remove_student_from_group(group, student, actor=request.user)
        return success_response(
            data=GroupMemberSerializer(membership).data,
            message='Учня успішно видалено з групи.'
        )


class GroupHistoryView(generics.GenericAPIView):
    permission_classes = [CanAccessGroup]
    queryset = Group.objects.all()
    
    @swagger_auto_schema(
        operation_summary="Group History",
        operation_description="History entries of the group, newest first",
        manual_parameters=[openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER)],
        responses={200: openapi.Response('History retrieved', GroupHistorySerializer(many=True))},
        security=[{'Bearer': []}],
        tags=['Groups']
    )
    def get(self, request, *args, **kwargs):
        group = self.get_object()
        limit = request.query_params.get('limit')
        limit = int(limit) if limit and limit.isdecimal() else None
        entries = get_group_history(group.pk, limit=limit)
        return success_response(
            data=GroupHistorySerializer(entries, many=True).data,
            message='Історію групи завантажено.'
        )

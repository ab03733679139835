import logging

from rest_framework import status, generics
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from django.db import transaction
from django.db.models import Count, Q

from user.models import Employee, Role
from user.api.employee_serializers import TeacherSerializer
from user.api.permissions import IsEmployee
from user.api.utils import success_response

logger = logging.getLogger(__name__)


def teacher_queryset():
    return Employee.objects.filter(role=Role.TEACHER).annotate(
        active_groups_count=Count('groups', filter=Q(groups__is_active=True), distinct=True)
    )


class TeacherListView(generics.ListCreateAPIView):
    """
    Teachers with their active group counts.
    All employees can read; administrators can create.
    """
    serializer_class = TeacherSerializer
    permission_classes = [IsEmployee]
    
    def get_queryset(self):
        queryset = teacher_queryset()
        include_inactive = self.request.query_params.get('include_inactive') in ('1', 'true', 'True')
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        
        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(full_name__icontains=search) |
                Q(phone__icontains=search) |
                Q(telegram_id__icontains=search)
            )
        
        return queryset.order_by('full_name')
    
    @swagger_auto_schema(
        operation_description="List teachers with their active group counts.",
        operation_summary="List Teachers",
        manual_parameters=[
            openapi.Parameter('search', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('include_inactive', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
        ],
        responses={
            200: openapi.Response('Teachers retrieved successfully', TeacherSerializer(many=True)),
            403: openapi.Response('Permission denied'),
        },
        security=[{'Bearer': []}],
        tags=['Teacher Management']
    )
    def get(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        
        serializer = self.get_serializer(queryset, many=True)
        return success_response(
            data=serializer.data,
            message='Викладачів успішно завантажено.'
        )
    
    @swagger_auto_schema(
        operation_description="Create a teacher (Administrator only)",
        operation_summary="Create Teacher",
        request_body=TeacherSerializer,
        responses={
            201: openapi.Response('Teacher created successfully', TeacherSerializer),
            400: openapi.Response('Validation errors'),
            403: openapi.Response('Permission denied - Administrator role required'),
        },
        security=[{'Bearer': []}],
        tags=['Teacher Management']
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        
        with transaction.atomic():
            teacher = serializer.save()
        
        logger.info(f"Teacher {teacher.public_id} created")
        return success_response(
            data=self.get_serializer(teacher).data,
            message='Викладача успішно створено.',
            status_code=status.HTTP_201_CREATED
        )


class TeacherRetrieveUpdateView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = TeacherSerializer
    permission_classes = [IsEmployee]
    lookup_field = 'pk'
    
    def get_queryset(self):
        return teacher_queryset()
    
    @swagger_auto_schema(
        operation_description="Retrieve a teacher by ID",
        operation_summary="Get Teacher",
        responses={
            200: openapi.Response('Teacher retrieved successfully', TeacherSerializer),
            404: openapi.Response('Teacher not found'),
        },
        security=[{'Bearer': []}],
        tags=['Teacher Management']
    )
    def get(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = self.get_serializer(instance)
        return success_response(
            data=serializer.data,
            message='Викладача успішно завантажено.'
        )
    
    @swagger_auto_schema(
        operation_description="Update a teacher (Administrator only)",
        operation_summary="Update Teacher",
        request_body=TeacherSerializer,
        responses={
            200: openapi.Response('Teacher updated successfully', TeacherSerializer),
            400: openapi.Response('Validation errors'),
            404: openapi.Response('Teacher not found'),
        },
        security=[{'Bearer': []}],
        tags=['Teacher Management']
    )
    def patch(self, request, *args, **kwargs):
        return super().patch(request, *args, **kwargs)
    
    @swagger_auto_schema(
        operation_description="Update a teacher (Administrator only)",
        operation_summary="Update Teacher",
        request_body=TeacherSerializer,
        responses={
            200: openapi.Response('Teacher updated successfully', TeacherSerializer),
            400: openapi.Response('Validation errors'),
            404: openapi.Response('Teacher not found'),
        },
        security=[{'Bearer': []}],
        tags=['Teacher Management']
    )
    def put(self, request, *args, **kwargs):
        return super().put(request, *args, **kwargs)
    
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        
        with transaction.atomic():
            serializer.save()
        
        return success_response(
            data=self.get_serializer(self.get_object()).data,
            message='Викладача успішно оновлено.'
        )
    
    @swagger_auto_schema(
        operation_description="Deactivate a teacher (Administrator only). Teachers are never hard-deleted because groups reference them.",
        operation_summary="Deactivate Teacher",
        responses={
            200: openapi.Response('Teacher deactivated'),
            404: openapi.Response('Teacher not found'),
        },
        security=[{'Bearer': []}],
        tags=['Teacher Management']
    )
    def delete(self, request, *args, **kwargs):
        instance = self.get_object()
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Teacher {instance.public_id} deactivated")
        return success_response(message='Викладача деактивовано.')

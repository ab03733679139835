import logging

from rest_framework import status, generics
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from django.db import transaction
from django.db.models import Q

from user.models import Student
from user.api.student_serializers import (
    StudentListSerializer,
    StudentDetailSerializer,
    StudentWriteSerializer,
)
from user.api.permissions import IsEmployee, IsAdministrator
from user.api.utils import success_response

logger = logging.getLogger(__name__)


class StudentListView(generics.ListCreateAPIView):
    queryset = Student.objects.all()
    serializer_class = StudentListSerializer
    permission_classes = [IsEmployee]
    
    def get_serializer_class(self):  # type: ignore
        if self.request.method == 'POST':
            return StudentWriteSerializer
        return StudentListSerializer
    
    def get_queryset(self):
        queryset = super().get_queryset()
        include_inactive = self.request.query_params.get('include_inactive') in ('1', 'true', 'True')
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        
        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(full_name__icontains=search) |
                Q(phone__icontains=search) |
                Q(parent_name__icontains=search) |
                Q(parent_phone__icontains=search) |
                Q(public_id__iexact=search)
            )
        
        return queryset.order_by('full_name')
    
    @swagger_auto_schema(
        operation_description="List students. Search covers name, phone and parent name/phone.",
        operation_summary="List Students",
        manual_parameters=[
            openapi.Parameter('search', openapi.IN_QUERY, type=openapi.TYPE_STRING),
            openapi.Parameter('include_inactive', openapi.IN_QUERY, type=openapi.TYPE_BOOLEAN),
        ],
        responses={
            200: openapi.Response('Students retrieved successfully', StudentListSerializer(many=True)),
            403: openapi.Response('Permission denied'),
        },
        security=[{'Bearer': []}],
        tags=['Student Management']
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
            message='Учнів успішно завантажено.'
        )
    
    @swagger_auto_schema(
        operation_description="Create a new student (Administrator only)",
        operation_summary="Create Student",
        request_body=StudentWriteSerializer,
        responses={
            201: openapi.Response('Student created successfully', StudentDetailSerializer),
            400: openapi.Response('Validation errors'),
            403: openapi.Response('Permission denied - Administrator role required'),
        },
        security=[{'Bearer': []}],
        tags=['Student Management']
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        
        with transaction.atomic():
            student = serializer.save()
        
        logger.info(f"Student {student.public_id} created")
        response_serializer = StudentDetailSerializer(student, context={'request': request})
        return success_response(
            data=response_serializer.data,
            message='Учня успішно додано.',
            status_code=status.HTTP_201_CREATED
        )


class StudentRetrieveUpdateView(generics.RetrieveUpdateDestroyAPIView):
    queryset = Student.objects.all()
    permission_classes = [IsEmployee]
    lookup_field = 'pk'
    
    def get_serializer_class(self):  # type: ignore
        if self.request.method in ['PUT', 'PATCH']:
            return StudentWriteSerializer
        return StudentDetailSerializer
    
    @swagger_auto_schema(
        operation_description="Retrieve a student with their active groups.",
        operation_summary="Get Student",
        responses={
            200: openapi.Response('Student retrieved successfully', StudentDetailSerializer),
            404: openapi.Response('Student not found'),
        },
        security=[{'Bearer': []}],
        tags=['Student Management']
    )
    def get(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = self.get_serializer(instance, context={'request': request})
        return success_response(
            data=serializer.data,
            message='Учня успішно завантажено.'
        )
    
    @swagger_auto_schema(
        operation_description="Update a student (Administrator only)",
        operation_summary="Update Student",
        request_body=StudentWriteSerializer,
        responses={
            200: openapi.Response('Student updated successfully', StudentDetailSerializer),
            400: openapi.Response('Validation errors'),
            404: openapi.Response('Student not found'),
        },
        security=[{'Bearer': []}],
        tags=['Student Management']
    )
    def patch(self, request, *args, **kwargs):
        return super().patch(request, *args, **kwargs)
    
    @swagger_auto_schema(
        operation_description="Update a student (Administrator only)",
        operation_summary="Update Student",
        request_body=StudentWriteSerializer,
        responses={
            200: openapi.Response('Student updated successfully', StudentDetailSerializer),
            400: openapi.Response('Validation errors'),
            404: openapi.Response('Student not found'),
        },
        security=[{'Bearer': []}],
        tags=['Student Management']
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
        
        response_serializer = StudentDetailSerializer(instance, context={'request': request})
        return success_response(
            data=response_serializer.data,
            message='Учня успішно оновлено.'
        )
    
    @swagger_auto_schema(
        operation_description="Delete a student together with memberships, attendance and payments (Administrator only)",
        operation_summary="Delete Student",
        responses={
            200: openapi.Response('Student deleted successfully'),
            404: openapi.Response('Student not found'),
        },
        security=[{'Bearer': []}],
        tags=['Student Management']
    )
    def delete(self, request, *args, **kwargs):
        instance = self.get_object()
        public_id = instance.public_id
        with transaction.atomic():
            instance.delete()
        logger.info(f"Student {public_id} deleted")
        return success_response(message='Учня успішно видалено.')


class StudentArchiveView(generics.GenericAPIView):
    queryset = Student.objects.all()
    permission_classes = [IsAdministrator]
    lookup_field = 'pk'
    archive = True
    
    @swagger_auto_schema(
        operation_summary="Archive / Restore Student",
        operation_description="Toggle a student's active flag",
        responses={200: openapi.Response('Student updated', StudentListSerializer)},
        security=[{'Bearer': []}],
        tags=['Student Management']
    )
    def post(self, request, *args, **kwargs):
        student = self.get_object()
        student.is_active = not self.archive
        student.save(update_fields=['is_active', 'updated_at'])
        return success_response(
            data=StudentListSerializer(student).data,
            message='Учня архівовано.' if self.archive else 'Учня відновлено.'
        )

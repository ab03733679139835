from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import User, Employee, Student, ErrorLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    
    list_display = ('email', 'first_name', 'last_name', 'is_staff', 'is_active', 'date_joined')
    list_filter = ('is_staff', 'is_active', 'is_superuser', 'date_joined')
    search_fields = ('email', 'first_name', 'last_name')
    ordering = ('-date_joined',)
    readonly_fields = ('date_joined', 'last_login')
    
    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        (_('Personal info'), {'fields': ('first_name', 'last_name')}),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        (_('Important dates'), {'fields': ('last_login', 'date_joined')}),
    )
    
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'first_name', 'last_name', 'password1', 'password2'),
        }),
    )


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    
    list_display = ('full_name', 'public_id', 'role', 'phone', 'user', 'is_active', 'created_at')
    list_filter = ('role', 'is_active', 'created_at')
    search_fields = ('full_name', 'public_id', 'phone', 'user__email')
    readonly_fields = ('public_id', 'created_at', 'updated_at')
    ordering = ('full_name',)
    autocomplete_fields = ('user',)
    
    fieldsets = (
        (_('Basic Information'), {
            'fields': ('user', 'public_id', 'full_name', 'role', 'is_active')
        }),
        (_('Contacts'), {
            'fields': ('phone', 'telegram_id', 'photo_url', 'notes')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    
    list_display = ('full_name', 'public_id', 'phone', 'parent_name', 'parent_phone', 'is_active', 'created_at')
    list_filter = ('is_active', 'source', 'created_at')
    search_fields = ('full_name', 'public_id', 'phone', 'parent_name', 'parent_phone')
    readonly_fields = ('public_id', 'created_at', 'updated_at')
    ordering = ('full_name',)
    
    fieldsets = (
        (_('Basic Information'), {
            'fields': ('public_id', 'full_name', 'phone', 'email', 'birth_date', 'school', 'is_active')
        }),
        (_('Parent'), {
            'fields': ('parent_name', 'parent_phone', 'parent_relation')
        }),
        (_('Additional'), {
            'fields': ('discount', 'source', 'notes')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(ErrorLog)
class ErrorLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'request_method', 'request_path', 'user')
    list_filter = ('request_method', 'created_at')
    search_fields = ('error_message', 'request_path')
    readonly_fields = (
        'error_message', 'error_stack', 'user', 'request_path', 'request_method', 'created_at'
    )

    def has_add_permission(self, request):
        return False

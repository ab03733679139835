from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView
from user.api.views import (
    AdministratorRegistrationView,
    EmployeeLoginView,
    EmployeeProfileView,
    PasswordChangeView,
)
from user.api.employee_views import (
    TeacherListView,
    TeacherRetrieveUpdateView,
)
from user.api.student_views import (
    StudentListView,
    StudentRetrieveUpdateView,
    StudentArchiveView,
)

app_name = 'user_api'

urlpatterns = [
    path('login/', EmployeeLoginView.as_view(), name='employee-login'),
    path('token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('profile/', EmployeeProfileView.as_view(), name='employee-profile'),
    path('password/change/', PasswordChangeView.as_view(), name='password-change'),
    path('administrators/', AdministratorRegistrationView.as_view(), name='administrator-register'),
    
    path('teachers/', TeacherListView.as_view(), name='teacher-list'),
    path('teachers/<int:pk>/', TeacherRetrieveUpdateView.as_view(), name='teacher-detail'),
    
    path('students/', StudentListView.as_view(), name='student-list'),
    path('students/<int:pk>/', StudentRetrieveUpdateView.as_view(), name='student-detail'),
    path('students/<int:pk>/archive/', StudentArchiveView.as_view(archive=True), name='student-archive'),
    path('students/<int:pk>/restore/', StudentArchiveView.as_view(archive=False), name='student-restore'),
]

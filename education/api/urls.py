from django.urls import path
from education.api.views import (
    CourseListView,
    CourseRetrieveUpdateView,
    CourseArchiveView,
    CourseGroupsView,
    GroupListView,
    GroupRetrieveUpdateView,
    GroupDependenciesView,
    GroupStatusView,
    GroupArchiveView,
    GroupStudentsView,
    GroupStudentRemoveView,
    GroupHistoryView,
)
from education.api import lesson_views

app_name = 'education_api'

urlpatterns = [
    path('courses/', CourseListView.as_view(), name='course-list'),
    path('courses/<int:pk>/', CourseRetrieveUpdateView.as_view(), name='course-detail'),
    path('courses/<int:pk>/archive/', CourseArchiveView.as_view(archive=True), name='course-archive'),
    path('courses/<int:pk>/restore/', CourseArchiveView.as_view(archive=False), name='course-restore'),
    path('courses/<int:pk>/groups/', CourseGroupsView.as_view(), name='course-groups'),
    
    path('groups/', GroupListView.as_view(), name='group-list'),
    path('groups/<int:pk>/', GroupRetrieveUpdateView.as_view(), name='group-detail'),
    path('groups/<int:pk>/dependencies/', GroupDependenciesView.as_view(), name='group-dependencies'),
    path('groups/<int:pk>/status/', GroupStatusView.as_view(), name='group-status'),
    path('groups/<int:pk>/archive/', GroupArchiveView.as_view(archive=True), name='group-archive'),
    path('groups/<int:pk>/restore/', GroupArchiveView.as_view(archive=False), name='group-restore'),
    path('groups/<int:pk>/students/', GroupStudentsView.as_view(), name='group-students'),
    path('groups/<int:pk>/students/<int:student_id>/', GroupStudentRemoveView.as_view(), name='group-student-remove'),
    path('groups/<int:pk>/history/', GroupHistoryView.as_view(), name='group-history'),
    path('groups/<int:pk>/lessons/', lesson_views.GroupLessonsView.as_view(), name='group-lessons'),
    path('groups/<int:pk>/generate-lessons/', lesson_views.GenerateLessonsView.as_view(), name='group-generate-lessons'),
    path('groups/<int:pk>/attendance-stats/', lesson_views.GroupAttendanceStatsView.as_view(), name='group-attendance-stats'),
    
    path('schedule/', lesson_views.ScheduleView.as_view(), name='schedule'),
    path('schedule/upcoming/', lesson_views.UpcomingLessonsView.as_view(), name='schedule-upcoming'),
    path('schedule/generate-all/', lesson_views.GenerateAllLessonsView.as_view(), name='schedule-generate-all'),
    
    path('lessons/<int:pk>/', lesson_views.LessonDetailView.as_view(), name='lesson-detail'),
    path('lessons/<int:pk>/cancel/', lesson_views.LessonCancelView.as_view(), name='lesson-cancel'),
    path('lessons/<int:pk>/reschedule/', lesson_views.LessonRescheduleView.as_view(), name='lesson-reschedule'),
    path('lessons/<int:pk>/attendance/', lesson_views.LessonAttendanceView.as_view(), name='lesson-attendance'),
    path('lessons/<int:pk>/attendance/all/', lesson_views.LessonAttendanceBulkView.as_view(), name='lesson-attendance-all'),
    path('lessons/<int:pk>/attendance/copy-previous/', lesson_views.LessonAttendanceCopyView.as_view(), name='lesson-attendance-copy'),
    
    path('students/<int:pk>/attendance/', lesson_views.StudentAttendanceView.as_view(), name='student-attendance'),
]

from django.urls import path
from payment import views
from payment.reports_views import (
    AttendanceReportView,
    PaymentsReportView,
    DebtsReportView,
)

app_name = 'payment'

urlpatterns = [
    path('groups/<int:pk>/', views.GroupPaymentsView.as_view(), name='group-payments'),
    path('groups/<int:pk>/records/', views.GroupMonthPaymentsView.as_view(), name='group-payment-records'),
    path('stats/', views.PaymentStatsView.as_view(), name='payment-stats'),
    path('students/<int:pk>/', views.StudentPaymentsView.as_view(), name='student-payments'),
    path('<int:pk>/', views.PaymentDetailView.as_view(), name='payment-detail'),
    
    # Reports endpoints
    path('reports/attendance/', AttendanceReportView.as_view(), name='attendance-report'),
    path('reports/payments/', PaymentsReportView.as_view(), name='payments-report'),
    path('reports/debts/', DebtsReportView.as_view(), name='debts-report'),
]

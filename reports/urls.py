# reports/urls.py
from django.urls import path

from . import views

app_name = 'reports'

urlpatterns = [
    # ============================================
    # COMMISSIONS
    # ============================================
    path('commissions/ledger/', views.CommissionListView.as_view(), name='commission-list'),
    path('commissions/<str:pk>/pay/', views.CommissionPayView.as_view(), name='commission-pay'),

    # ============================================
    # REPORTS
    # ============================================
    path('', views.ReportIndexView.as_view(), name='report-index'),
    path('<slug:kind>/', views.ReportView.as_view(), name='report'),
]

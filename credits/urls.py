# credits/urls.py
from django.urls import path

from . import views

app_name = 'credits'

urlpatterns = [
    # ============================================
    # PAYMENTS
    # ============================================
    path('payments/', views.PaymentListView.as_view(), name='payment-list'),
    path('payments/<str:pk>/delete/', views.PaymentDeleteView.as_view(), name='payment-delete'),

    # ============================================
    # CREDITS
    # ============================================
    path('', views.CreditListView.as_view(), name='credit-list'),
    path('new/', views.CreditFormView.as_view(), name='credit-create'),
    path('<str:pk>/', views.CreditDetailView.as_view(), name='credit-detail'),
    path('<str:pk>/edit/', views.CreditFormView.as_view(), name='credit-update'),
    path('<str:pk>/pay/', views.CreditPayView.as_view(), name='credit-pay'),
    path('<str:pk>/delete/', views.CreditDeleteView.as_view(), name='credit-delete'),
]

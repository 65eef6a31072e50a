# sales/urls.py
from django.urls import path

from . import views

app_name = 'sales'

urlpatterns = [
    # ============================================
    # CUSTOMERS
    # ============================================
    path('customers/', views.CustomerListView.as_view(), name='customer-list'),
    path('customers/new/', views.CustomerFormView.as_view(), name='customer-create'),
    path('customers/<str:pk>/', views.CustomerDetailView.as_view(), name='customer-detail'),
    path('customers/<str:pk>/edit/', views.CustomerFormView.as_view(), name='customer-update'),
    path('customers/<str:pk>/delete/', views.CustomerDeleteView.as_view(), name='customer-delete'),

    # ============================================
    # QUOTATIONS
    # ============================================
    path('quotations/', views.QuotationListView.as_view(), name='quotation-list'),
    path('quotations/new/', views.QuotationFormView.as_view(), name='quotation-create'),
    path('quotations/<str:pk>/', views.QuotationDetailView.as_view(), name='quotation-detail'),
    path('quotations/<str:pk>/edit/', views.QuotationFormView.as_view(), name='quotation-update'),
    path('quotations/<str:pk>/delete/', views.QuotationDeleteView.as_view(), name='quotation-delete'),
    path('quotations/<str:pk>/accept/', views.QuotationAcceptView.as_view(), name='quotation-accept'),
    path('quotations/<str:pk>/requisition/', views.RequisitionView.as_view(), name='quotation-requisition'),

    # ============================================
    # PAYMENT METHODS
    # ============================================
    path('payment-methods/', views.PaymentMethodListView.as_view(), name='payment-method-list'),
    path('payment-methods/new/', views.PaymentMethodFormView.as_view(), name='payment-method-create'),
    path('payment-methods/<str:pk>/edit/', views.PaymentMethodFormView.as_view(), name='payment-method-update'),
    path('payment-methods/<str:pk>/delete/', views.PaymentMethodDeleteView.as_view(), name='payment-method-delete'),

    # ============================================
    # SALES
    # ============================================
    path('', views.SaleListView.as_view(), name='sale-list'),
    path('new/', views.SaleFormView.as_view(), name='sale-create'),
    path('<str:pk>/', views.SaleDetailView.as_view(), name='sale-detail'),
    path('<str:pk>/edit/', views.SaleFormView.as_view(), name='sale-update'),
    path('<str:pk>/delete/', views.SaleDeleteView.as_view(), name='sale-delete'),
    path('<str:pk>/voucher/', views.SaleVoucherView.as_view(), name='sale-voucher'),
]

# purchases/urls.py
from django.urls import path

from . import views

app_name = 'purchases'

urlpatterns = [
    # ============================================
    # SUPPLIERS
    # ============================================
    path('suppliers/', views.SupplierListView.as_view(), name='supplier-list'),
    path('suppliers/new/', views.SupplierFormView.as_view(), name='supplier-create'),
    path('suppliers/<str:pk>/', views.SupplierDetailView.as_view(), name='supplier-detail'),
    path('suppliers/<str:pk>/edit/', views.SupplierFormView.as_view(), name='supplier-update'),
    path('suppliers/<str:pk>/delete/', views.SupplierDeleteView.as_view(), name='supplier-delete'),

    # ============================================
    # PURCHASES
    # ============================================
    path('', views.PurchaseListView.as_view(), name='purchase-list'),
    path('new/', views.PurchaseFormView.as_view(), name='purchase-create'),
    path('<str:pk>/', views.PurchaseDetailView.as_view(), name='purchase-detail'),
    path('<str:pk>/edit/', views.PurchaseFormView.as_view(), name='purchase-update'),
    path('<str:pk>/delete/', views.PurchaseDeleteView.as_view(), name='purchase-delete'),
]

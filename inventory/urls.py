# inventory/urls.py
from django.urls import path

from . import views
from .api import views as api_views

app_name = 'inventory'

urlpatterns = [
    # ============================================
    # CATEGORIES
    # ============================================
    path('categories/', views.CategoryListView.as_view(), name='category-list'),
    path('categories/new/', views.CategoryFormView.as_view(), name='category-create'),
    path('categories/<str:pk>/edit/', views.CategoryFormView.as_view(), name='category-update'),
    path('categories/<str:pk>/delete/', views.CategoryDeleteView.as_view(), name='category-delete'),

    # ============================================
    # MANUFACTURERS
    # ============================================
    path('manufacturers/', views.ManufacturerListView.as_view(), name='manufacturer-list'),
    path('manufacturers/new/', views.ManufacturerFormView.as_view(), name='manufacturer-create'),
    path('manufacturers/<str:pk>/edit/', views.ManufacturerFormView.as_view(), name='manufacturer-update'),
    path('manufacturers/<str:pk>/delete/', views.ManufacturerDeleteView.as_view(), name='manufacturer-delete'),

    # ============================================
    # PRODUCTS
    # ============================================
    path('products/', views.ProductListView.as_view(), name='product-list'),
    path('products/new/', views.ProductFormView.as_view(), name='product-create'),
    path('products/import/', views.ProductImportView.as_view(), name='product-import'),
    path('products/import/template/', views.ProductImportTemplateView.as_view(), name='product-import-template'),
    path('products/<str:pk>/', views.ProductDetailView.as_view(), name='product-detail'),
    path('products/<str:pk>/edit/', views.ProductFormView.as_view(), name='product-update'),
    path('products/<str:pk>/delete/', views.ProductDeleteView.as_view(), name='product-delete'),
    path('products/<str:pk>/image/', views.ProductImageView.as_view(), name='product-image'),
    path('products/<str:pk>/bin-card/', views.BinCardView.as_view(), name='product-bin-card'),

    # ============================================
    # BATCHES & MEDICINES
    # ============================================
    path('batches/', views.BatchListView.as_view(), name='batch-list'),
    path('batches/new/', views.BatchFormView.as_view(), name='batch-create'),
    path('batches/<str:pk>/edit/', views.BatchFormView.as_view(), name='batch-update'),
    path('batches/<str:pk>/delete/', views.BatchDeleteView.as_view(), name='batch-delete'),
    path('medicines/', views.MedicineListView.as_view(), name='medicine-list'),
    path('medicines/new/', views.MedicineFormView.as_view(), name='medicine-create'),
    path('medicines/<str:pk>/edit/', views.MedicineFormView.as_view(), name='medicine-update'),
    path('medicines/<str:pk>/delete/', views.MedicineDeleteView.as_view(), name='medicine-delete'),

    # ============================================
    # UNITS OF MEASURE
    # ============================================
    path('uoms/', views.UomListView.as_view(), name='uom-list'),
    path('uoms/new/', views.UomFormView.as_view(), name='uom-create'),
    path('uoms/<str:pk>/edit/', views.UomFormView.as_view(), name='uom-update'),
    path('uoms/<str:pk>/delete/', views.UomDeleteView.as_view(), name='uom-delete'),
    path('unit-categories/', views.UnitCategoryListView.as_view(), name='unit-category-list'),
    path('unit-categories/new/', views.UnitCategoryFormView.as_view(), name='unit-category-create'),
    path('unit-categories/<str:pk>/edit/', views.UnitCategoryFormView.as_view(), name='unit-category-update'),
    path('unit-categories/<str:pk>/delete/', views.UnitCategoryDeleteView.as_view(), name='unit-category-delete'),

    # ============================================
    # JSON LOOKUPS (used by line-item pickers)
    # ============================================
    path('api/products/lookup/', api_views.ProductLookupAPIView.as_view(), name='api-product-lookup'),
    path('api/products/<str:pk>/batches/', api_views.AvailableBatchesAPIView.as_view(), name='api-product-batches'),
]

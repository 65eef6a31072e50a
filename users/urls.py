# users/urls.py
from django.urls import path

from . import views

app_name = 'users'

urlpatterns = [
    path('', views.UserListView.as_view(), name='user-list'),
    path('new/', views.UserFormView.as_view(), name='user-create'),
    path('<str:pk>/', views.UserDetailView.as_view(), name='user-detail'),
    path('<str:pk>/edit/', views.UserFormView.as_view(), name='user-update'),
    path('<str:pk>/permissions/', views.UserPermissionsView.as_view(), name='user-permissions'),
    path('<str:pk>/delete/', views.UserDeleteView.as_view(), name='user-delete'),
]

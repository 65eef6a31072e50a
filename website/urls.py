# website/urls.py
from django.urls import path

from . import views

app_name = 'website'

urlpatterns = [
    path('', views.DashboardView.as_view(), name='home'),
    path('login/', views.LoginView.as_view(), name='login'),
    path('signup/', views.SignUpView.as_view(), name='signup'),
    path('logout/', views.LogoutView.as_view(), name='logout'),
    path('unauthorized/', views.UnauthorizedView.as_view(), name='unauthorized'),
    path('account/', views.AccountView.as_view(), name='account'),
    path('settings/pharmacy/', views.PharmacySettingsView.as_view(), name='pharmacy-settings'),

    # Notifications
    path('notifications/', views.NotificationListView.as_view(), name='notifications'),
    path('notifications/unread-count/', views.UnreadCountView.as_view(), name='notifications-unread-count'),
    path('notifications/read-all/', views.NotificationReadView.as_view(), name='notifications-read-all'),
    path('notifications/<str:pk>/read/', views.NotificationReadView.as_view(), name='notification-read'),
]

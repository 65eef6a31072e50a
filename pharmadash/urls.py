from django.urls import path, include

urlpatterns = [
    # HTML ROUTES (Django Template Views)
    path('inventory/', include('inventory.urls')),
    path('sales/', include('sales.urls')),
    path('purchases/', include('purchases.urls')),
    path('credits/', include('credits.urls')),
    path('users/', include('users.urls')),
    path('reports/', include('reports.urls')),

    # Dashboard, auth & account
    path('', include('website.urls')),
]

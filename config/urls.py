"""
URL configuration for the personal finances API.

Routes have no trailing slash; the client calls ``/transactions/{id}`` etc.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from config.views import health_check

urlpatterns = [
    # Health check
    path('health', health_check, name='health-check'),

    # Admin
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema', SpectacularAPIView.as_view(), name='api-schema'),
    path('docs', SpectacularSwaggerView.as_view(url_name='api-schema'), name='api-docs'),

    # Authentication
    path('auth/', include('apps.accounts.urls')),

    # Transactions and installment purchases
    path('', include('apps.transactions.urls')),
]


# Custom error handlers
handler404 = 'config.views.error_404'
handler500 = 'config.views.error_500'

"""
URL configuration for the hospital accountability core.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API v1
    path('v1/', include('apps.rbac.urls')),  # Permissions, roles, principals
    path('v1/', include('apps.breakglass.urls')),  # Emergency grants
    path('v1/', include('apps.audit.urls')),  # Audit trail
]

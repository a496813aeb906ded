"""
Break-glass API URLs.
"""
from django.urls import path
from apps.breakglass.views import GrantListView, GrantDetailView

app_name = 'breakglass'

urlpatterns = [
    path('breakglass/grants', GrantListView.as_view(), name='grant-list'),
    path('breakglass/grants/<uuid:grant_id>', GrantDetailView.as_view(), name='grant-detail'),
]

"""
URL patterns for outreach sending.
"""

from django.urls import path

from . import views

app_name = 'outreach'

urlpatterns = [
    path(
        'brand-matches/<uuid:pk>/outreach/',
        views.BrandMatchOutreachView.as_view(),
        name='brand-match-outreach',
    ),
]

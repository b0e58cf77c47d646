"""
URL patterns for brand matches and AI suggestions.
"""

from django.urls import path

from . import views

app_name = 'matching'

urlpatterns = [
    # Brand matches
    path('brand-matches/', views.BrandMatchListCreateView.as_view(), name='brand-match-list'),
    path('brand-matches/<uuid:pk>/status/', views.BrandMatchStatusView.as_view(), name='brand-match-status'),

    # AI generation
    path('suggest-brands/', views.SuggestBrandsView.as_view(), name='suggest-brands'),
    path('suggest-brands-from-my-niches/', views.SuggestFromMyNichesView.as_view(), name='suggest-from-my-niches'),
    path(
        'generate-monthly-brand-matches/',
        views.GenerateMonthlyBrandMatchesView.as_view(),
        name='generate-monthly',
    ),

    # Onboarding and niches
    path('creator-profile/', views.CreatorProfileView.as_view(), name='creator-profile'),
    path(
        'creator-profile/complete-onboarding/',
        views.CompleteOnboardingView.as_view(),
        name='complete-onboarding',
    ),
    path('creator-profile/onboarding-status/', views.OnboardingStatusView.as_view(), name='onboarding-status'),
    path('niches/', views.NicheListView.as_view(), name='niche-list'),
    path('me/niches/', views.MyNichesView.as_view(), name='my-niches'),
    path('me/niches/<int:pk>/', views.MyNicheDetailView.as_view(), name='my-niche-detail'),
]

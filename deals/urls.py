"""
URL patterns for deals and invoice callbacks.
"""

from django.urls import path

from . import views

app_name = 'deals'

urlpatterns = [
    # Deals
    path('deals/', views.DealListCreateView.as_view(), name='deal-list'),
    path('deals/<uuid:pk>/', views.DealDetailView.as_view(), name='deal-detail'),
    path('deals/<uuid:pk>/transition/', views.DealTransitionView.as_view(), name='deal-transition'),
    path('deals/<uuid:pk>/mark-negotiation/', views.MarkNegotiationView.as_view(), name='deal-mark-negotiation'),
    path('deals/<uuid:pk>/lock-agreement/', views.LockAgreementView.as_view(), name='deal-lock-agreement'),
    path('deals/<uuid:pk>/reopen-negotiation/', views.ReopenNegotiationView.as_view(), name='deal-reopen'),
    path('deals/<uuid:pk>/activity/', views.DealActivityView.as_view(), name='deal-activity'),
    path('deals/<uuid:pk>/conversations/', views.DealConversationView.as_view(), name='deal-conversations'),

    # Invoicing callbacks
    path('invoices/<uuid:pk>/mark-sent/', views.InvoiceMarkSentView.as_view(), name='invoice-mark-sent'),
    path('invoices/<uuid:pk>/mark-paid/', views.InvoiceMarkPaidView.as_view(), name='invoice-mark-paid'),
]

"""
Affiliate API URLs
Link, click, conversion, return, creator and commission ledger endpoints.
"""

from django.urls import path

from . import views

app_name = 'affiliates'

urlpatterns = [
    # Edge and checkout (service token or staff)
    path('links/', views.create_link, name='create_link'),
    path('clicks/', views.record_click, name='record_click'),
    path('conversions/', views.attribute_conversion, name='attribute_conversion'),
    path('commissions/<uuid:transaction_id>/status/', views.update_commission_status, name='commission_status'),
    path('returns/', views.record_return, name='record_return'),

    # Staff console
    path('creators/', views.list_creators, name='list_creators'),
    path('creators/<uuid:creator_id>/status/', views.change_creator_status, name='creator_status'),
    path('summary/', views.program_summary, name='program_summary'),
    path('creators/<uuid:creator_id>/metrics/', views.creator_metrics, name='creator_metrics'),
    path('creators/<uuid:creator_id>/commissions/', views.creator_commissions, name='creator_commissions'),
    path('creators/<uuid:creator_id>/payout-eligibility/', views.payout_eligibility, name='payout_eligibility'),
    path('creators/<uuid:creator_id>/tier/recompute/', views.recompute_tier, name='recompute_tier'),
]

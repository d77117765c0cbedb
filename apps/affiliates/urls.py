"""
Short link redirect URL.
"""

from django.urls import path

from . import views

app_name = "affiliates"

urlpatterns = [
    path("<str:code>/", views.referral_redirect, name="redirect"),
]

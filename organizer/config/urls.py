'''
Name: config/urls.py
Description: Root URL configuration.
Created: October 5, 2026
Last Modified: October 12, 2026
'''

from django.urls import path, include

urlpatterns = [
    path("accounts/", include("django.contrib.auth.urls")),
    path("api/", include("apps.scheduler.urls")),
]

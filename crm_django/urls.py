"""
URL configuration for the MK1 CRM dashboard.

Django's own admin lives under /django-admin/ so /admin/<item>/ stays free
for the CRM administration section.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('django-admin/', admin.site.urls),
    path('', include('crm_app.urls')),
]

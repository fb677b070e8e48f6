#!/usr/bin/env python
"""
Create role groups and the superuser from environment variables.
Used for Railway deployment where console access is limited.

Set these env vars:
- DJANGO_SUPERUSER_USERNAME
- DJANGO_SUPERUSER_EMAIL
- DJANGO_SUPERUSER_PASSWORD

Optional:
- CRM_DEMO_USERS_PASSWORD  create one demo user per role
  (admin_demo, manager_demo, sale_demo, support_demo)

Then run: python create_superuser.py
"""

import os
import sys
import django

# Setup Django
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'crm_django.settings')
django.setup()

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from models.enums import Role

User = get_user_model()

# One auth group per role; group name == Role value
for role in Role:
    _, created = Group.objects.get_or_create(name=role.value)
    if created:
        print(f"Created group '{role.value}'")

demo_password = os.environ.get('CRM_DEMO_USERS_PASSWORD')
if demo_password:
    for role in Role:
        demo_username = f"{role.value.lower()}_demo"
        user, created = User.objects.get_or_create(username=demo_username)
        if created:
            user.set_password(demo_password)
            user.save()
            print(f"Created demo user '{demo_username}'")
        user.groups.add(Group.objects.get(name=role.value))

username = os.environ.get('DJANGO_SUPERUSER_USERNAME')
email = os.environ.get('DJANGO_SUPERUSER_EMAIL', '')
password = os.environ.get('DJANGO_SUPERUSER_PASSWORD')

if not username or not password:
    print("DJANGO_SUPERUSER_USERNAME and DJANGO_SUPERUSER_PASSWORD are required")
    sys.exit(0)  # Exit cleanly so deploy doesn't fail

if User.objects.filter(username=username).exists():
    print(f"Superuser '{username}' already exists, skipping creation")
    sys.exit(0)

User.objects.create_superuser(username=username, email=email, password=password)
print(f"Superuser '{username}' created successfully")

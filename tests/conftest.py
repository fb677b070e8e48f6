"""
Pytest configuration for Django tests.
"""
import os
import sys

import pytest

# Add project root to path so crm_django can be imported
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)


def pytest_configure():
    """Configure Django settings for pytest."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'crm_django.settings')
    os.environ.setdefault('CRM_RECORD_STORE', 'memory')

    import django
    django.setup()


@pytest.fixture
def memory_store(monkeypatch):
    """Fresh in-memory store with demo data, installed as the process store."""
    from services import record_store

    store = record_store.MemoryRecordStore.with_demo_data()
    monkeypatch.setattr(record_store, '_store', store)
    yield store
    record_store.reset_record_store()

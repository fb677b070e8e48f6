"""
Dependency Guardrails

Keeps pyproject.toml in step with the third-party libraries the app imports.
Run with: pytest tests/test_requirements.py
"""

import os
import re
import tomllib

RUNTIME_PACKAGES = [
    'django',
    'python-dotenv',
    'dj-database-url',
    'whitenoise',
    'psycopg2-binary',
]

TEST_PACKAGES = [
    'pytest',
    'pytest-django',
]


def _pyproject():
    path = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'pyproject.toml')
    with open(path, 'rb') as f:
        return tomllib.load(f)


def _package_name(requirement):
    # Name before any version specifier, extra or marker
    return re.split(r'[\s\[<>=!~;]', requirement, maxsplit=1)[0].strip().lower()


def test_runtime_stack_declared():
    """Every third-party library the app imports is a declared dependency."""
    declared = {_package_name(r) for r in _pyproject()['project']['dependencies']}
    missing = [p for p in RUNTIME_PACKAGES if p not in declared]
    assert not missing, f"Missing from dependencies: {missing}"


def test_test_tools_stay_in_test_extra():
    """pytest tooling belongs to the test extra, not the runtime install."""
    project = _pyproject()['project']
    runtime = {_package_name(r) for r in project['dependencies']}
    test_extra = {_package_name(r) for r in project['optional-dependencies']['test']}
    for package in TEST_PACKAGES:
        assert package in test_extra, f"{package} missing from the test extra"
        assert package not in runtime, f"{package} must not be a runtime dependency"

"""
Root-level conftest for all tests.

Settings are read from the environment on first use, and several modules
(the worker routes and pool settings) read them at import time, so the
required variables are set before anything from sitebrain is imported.
"""
import os

os.environ.setdefault("POSTGRES_USER", "unit_test_user")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_PASSWORD", "unit_test_password")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "unit_test_db")
os.environ.setdefault("JSON_LOGS", "true")

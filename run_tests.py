#!/usr/bin/env python
"""
Test runner script for the full suite
Usage: python run_tests.py [app ...]
"""
import os
import sys
import django
from django.conf import settings
from django.test.utils import get_runner

TEST_APPS = [
    'ticketwise.core',
    'ticketwise.organization',
    'ticketwise.parties',
    'ticketwise.people',
    'ticketwise.tickets',
    'ticketwise.notifications',
    'ticketwise.inventory',
    'ticketwise.ai',
    'ticketwise.satisfaction',
    'ticketwise.reports',
]

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'ticketwise.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    labels = [f'ticketwise.{label}' if not label.startswith('ticketwise.') else label for label in sys.argv[1:]]
    failures = test_runner.run_tests(labels or TEST_APPS)
    sys.exit(bool(failures))

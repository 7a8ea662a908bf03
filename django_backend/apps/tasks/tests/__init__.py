"""
Tests for the tasks application.

Run with: python manage.py test apps.tasks --settings=config.test_settings
"""

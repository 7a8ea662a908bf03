"""Tests for the event publishers and management commands"""

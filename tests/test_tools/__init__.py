"""
Test Tools Package
Tests for the tools module (meal windows, scheduler, document store, notifiers)
"""

"""
Test suite for mentortrust
"""

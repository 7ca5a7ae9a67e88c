"""
Test mocks
"""

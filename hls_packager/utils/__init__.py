"""
Packaging utilities
"""

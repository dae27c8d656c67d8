"""
Shared helpers for the HTTP layer
"""

"""
Core package for shared utilities.

Holds configuration, structured logging and token handling shared by the
API and service layers.
"""

"""
Test suite for squasher.

This package contains tests for all squasher components:
- Unit tests for individual components
- Integration tests rebuilding schemas on SQLite
"""

"""
Test suite for objectfs.

Run with: pytest objectfs/tests
"""

"""
Tests Package - Unit tests for the retrieval workflow

Test structure:
- tests/conftest.py - In-memory Glacier, SNS and SQS fakes plus shared fixtures
- tests/test_*.py - One module per workflow component

AWS is never contacted: fakes record every call in a shared log so tests can
assert on call order across services.
"""

"""Root pytest configuration.

The application package resides in the nested `draftwise/` directory.
Test fixtures and path setup live in `tests/conftest.py`.
"""

"""Database access layer (DAL) for the API tester.

This sub-package encapsulates low-level DB interactions so that the action
handlers remain storage-agnostic.
"""

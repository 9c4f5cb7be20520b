"""
Test support utilities for appdelivery tests.

Builders and fakes that are imported directly by test modules rather than
injected as fixtures.
"""

"""
Test suite for aioserialport - asynchronous serial port library.

This package contains unit tests, integration tests against the mock
binding, and test fixtures for verifying port lifecycle and stream behavior.
"""

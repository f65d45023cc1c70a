"""
Tests Package - Unit and End-to-End Tests

Test structure:
- tests/conftest.py - fake aiohttp session and Settings factory
- tests/test_pool.py - bounded concurrency and cursor pagination
- tests/test_directory.py - directory API client
- tests/test_report.py - CSV report rendering
- tests/test_delivery.py - local and SFTP delivery
- tests/test_handler.py - full export runs and response contract
"""

"""
Utility helpers for the MediaShelf backend.

- logger: JSON/standard formatters and application logging setup
- formatting: File size, duration and compression percentage formatting
- file_validator: Upload extension, size and filename checks
"""

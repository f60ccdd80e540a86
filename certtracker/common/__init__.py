"""Shared infrastructure: constants, errors, pagination, filters, audit, storage."""

"""Compliance aggregation — dashboard snapshot and position-reference repair."""

"""Workforce module — Employee, Position, PositionRequirement models, schemas and services."""

from certtracker.workforce.models import Employee, EmployeePosition, Position, PositionRequirement

__all__ = ["Employee", "EmployeePosition", "Position", "PositionRequirement"]

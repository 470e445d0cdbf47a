"""Estimate aggregate."""

from assessment_modules.estimate.aggregate import ENTITY_TYPE, Estimate

__all__ = ["ENTITY_TYPE", "Estimate"]

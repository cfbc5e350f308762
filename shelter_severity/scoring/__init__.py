"""Severity scoring package.

This module contains:
- Pydantic schemas for the calculation model, household records and results
- Boundary validation of externally parsed calculation models
- A small, explicit engine: rule matching, pillar aggregation, decision tree
  resolution and the area-level 20% rule
- The calculation service that runs the whole pipeline over a dataset

Nothing in this package performs I/O; loading inputs and persisting results is
left to the caller.
"""

from .schemas import (
    CalculationModel,
    CalculationOptions,
    CalculationResult,
    HouseholdRecord,
    HouseholdSeverity,
    AreaSeverityResult,
)
from .services import SeverityCalculationService, calculate_severity
from .validation import load_calculation_model, validate_calculation_model

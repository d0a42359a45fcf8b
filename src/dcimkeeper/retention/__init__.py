"""Retention policy: cutoff computation and eligibility."""

from .classifier import (
    ClassificationResult,
    RetentionClassifier,
    compute_cutoff,
    is_eligible,
    subtract_months,
)
from .models import DeletionCandidate

__all__ = [
    "DeletionCandidate",
    "ClassificationResult",
    "RetentionClassifier",
    "compute_cutoff",
    "is_eligible",
    "subtract_months",
]

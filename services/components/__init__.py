"""
Components package for the collection pipeline.
Provides HashCalculator, AreaClassifier and the change relevance policy.
"""
from services.components.hash_calculator import HashCalculator
from services.components.area_classifier import AreaClassifier
from services.components.change_policy import is_relevant_update

__all__ = [
    "HashCalculator",
    "AreaClassifier",
    "is_relevant_update",
]

"""
Model identifier classification.

A model's request-building rules are decided by substring matching on its
identifier. The rules live in one ordered table; add a family by adding a
row, the first matching row wins.
"""
from typing import Tuple

from .types import ModelClass

# Order matters: "gpt-5-pro" must match before the plain "gpt-5" family.
MODEL_CLASS_RULES: Tuple[Tuple[str, ModelClass], ...] = (
    ("gpt-5-pro", ModelClass.ALTERNATE_ENDPOINT),
    ("o3-pro", ModelClass.ALTERNATE_ENDPOINT),
    ("gpt-5", ModelClass.RESTRICTED_SAMPLING),
    ("o1", ModelClass.RESTRICTED_SAMPLING),
    ("o3", ModelClass.RESTRICTED_SAMPLING),
    ("o4", ModelClass.RESTRICTED_SAMPLING),
)


def classify_model(model: str) -> ModelClass:
    """
    Classify a model identifier.

    Args:
        model (str): The model identifier, e.g. 'gpt-5-mini-2025-08-07'.

    Returns:
        ModelClass: The first matching class from MODEL_CLASS_RULES, or STANDARD.
    """
    normalized = (model or "").strip().lower()
    for needle, model_class in MODEL_CLASS_RULES:
        if needle in normalized:
            return model_class
    return ModelClass.STANDARD

# validators/__init__.py
from .condition_checks import check_condition

__all__ = ["check_condition"]

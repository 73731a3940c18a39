"""
Data Generation Module
"""
from .generators import SalesRecordGenerator

__all__ = [
    "SalesRecordGenerator",
]

"""
Jupiter Document Engine

Turns pre-fetched lease and real-estate agreement facts into normalized
documents with computed term dates, payment schedules, amendment overlays
and quality-control flags.
"""

from .exceptions import (
    JupiterError,
    DataLoadError,
    ConfigurationError,
    UnsupportedFrequencyError,
)
from .loader import Dataset, load_dataset
from .models import JupiterDoc, Payment, PaymentFrequency
from .pipeline import JupiterPipeline, process_dataset
from .qc import QCEngine

__version__ = "1.0.0"
__all__ = [
    "JupiterError",
    "DataLoadError",
    "ConfigurationError",
    "UnsupportedFrequencyError",
    "Dataset",
    "load_dataset",
    "JupiterDoc",
    "Payment",
    "PaymentFrequency",
    "JupiterPipeline",
    "process_dataset",
    "QCEngine",
]

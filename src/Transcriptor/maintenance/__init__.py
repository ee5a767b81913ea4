"""Registry maintenance: integrity sweep and date-based retention."""

from .integrity import IntegrityReport, IntegritySweep
from .retention import RetentionCleaner, RetentionReport

__all__ = ["IntegrityReport", "IntegritySweep", "RetentionCleaner", "RetentionReport"]

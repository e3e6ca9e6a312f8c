"""Page analyzers: one per scoring category."""

from seo_audit.analyzers.base import BaseAnalyzer, percentage, round_half_up
from seo_audit.analyzers.content import ContentAnalyzer
from seo_audit.analyzers.meta import MetaAnalyzer
from seo_audit.analyzers.technical import TechnicalAnalyzer

__all__ = [
    "BaseAnalyzer",
    "ContentAnalyzer",
    "MetaAnalyzer",
    "TechnicalAnalyzer",
    "percentage",
    "round_half_up",
]

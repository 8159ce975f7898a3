"""Content scoring engine for answer-engine optimization (AEO)."""

from aeo_scoring.engine import ScoringEngine
from aeo_scoring.models import DomainAnalysisResult, PageInput, ProjectContext, Score

__version__ = "0.1.0"

__all__ = ["DomainAnalysisResult", "PageInput", "ProjectContext", "Score", "ScoringEngine"]

"""gmatch - Supplier and bank name candidate matching."""

from gmatch.api import MatchingEngine
from gmatch.candidates import CandidateService
from gmatch.config import MatchConfig, Settings
from gmatch.errors import CatalogUnavailable, LearningStoreDegraded, MatchError
from gmatch.feedback import DecisionFeedback
from gmatch.matcher import MatcherStats, MatchingService
from gmatch.normalize import make_key, normalize
from gmatch.stores import InMemoryCatalog, InMemoryLearningLog, InMemoryLearningStore
from gmatch.types import Candidate, MatchDecision, NormalizedName

__all__ = [
    "Candidate",
    "CandidateService",
    "CatalogUnavailable",
    "DecisionFeedback",
    "InMemoryCatalog",
    "InMemoryLearningLog",
    "InMemoryLearningStore",
    "LearningStoreDegraded",
    "MatchConfig",
    "MatchDecision",
    "MatchError",
    "MatcherStats",
    "MatchingEngine",
    "MatchingService",
    "NormalizedName",
    "Settings",
    "make_key",
    "normalize",
]

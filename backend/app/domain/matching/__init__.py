"""Sponsor matching domain exports."""

from . import audit, policy  # noqa: F401
from .models import Decision, MatchingRequest, MatchingStatus  # noqa: F401
from .ranking import RankedCandidate, rank  # noqa: F401
from .scoring import DEFAULT_WEIGHTS, MatchScorer, score  # noqa: F401
from .service import MatchingService  # noqa: F401

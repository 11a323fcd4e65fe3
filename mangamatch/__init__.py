"""Title matching engine for migrating manga reading lists between catalogues."""

from mangamatch.core.models import MangaTitles, MatchOutcome, MatchResult, TitleRecord
from mangamatch.engine import ENGINE_VERSION, MatchingEngine

__version__ = ENGINE_VERSION

__all__ = [
    "MatchingEngine",
    "MangaTitles",
    "MatchOutcome",
    "MatchResult",
    "TitleRecord",
    "__version__",
]

"""Feed adapters normalizing the upstream live-score sources.

Available adapters:
- SoccerAdapter: soccer feed (/api/matches)
- TennisAdapter: tennis feed (/api/games, sets-won scoring)
- HockeyAdapter: hockey feed (/api/games)

Base classes:
- BaseFeedAdapter: fetch with timeout, retries and circuit breaker
"""
from typing import List

from app.core.config import settings
from app.services.sync.adapters.base import BaseFeedAdapter
from app.services.sync.adapters.soccer_adapter import SoccerAdapter
from app.services.sync.adapters.tennis_adapter import TennisAdapter
from app.services.sync.adapters.hockey_adapter import HockeyAdapter


def get_feed_adapters() -> List[BaseFeedAdapter]:
    """
    Build the configured adapters, in the order they are synced.

    Example:
        >>> [a.source_tag for a in get_feed_adapters()]
        ['soccer-api', 'tennis-api', 'hockey-api']
    """
    return [
        SoccerAdapter(settings.SOCCER_API_URL),
        TennisAdapter(settings.TENNIS_API_URL),
        HockeyAdapter(settings.HOCKEY_API_URL),
    ]


__all__ = [
    "BaseFeedAdapter",
    "SoccerAdapter",
    "TennisAdapter",
    "HockeyAdapter",
    "get_feed_adapters",
]

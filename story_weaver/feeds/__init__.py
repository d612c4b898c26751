"""
RSS feed ingestion: curated sources, parsing, category inference,
concurrent aggregation and the feed/refresh jobs built on top of it.
"""

from .aggregator import AggregatedResult, FeedFetchError, fetch_aggregated_feed, get_source_stats
from .categorize import CATEGORY_RULES, infer_category
from .parser import FeedParser
from .service import FeedSnapshot, RefreshResult, build_feed, feed_cache_key, refresh_feeds, screen_snapshot
from .sources import CURATED_FEEDS

__all__ = [
    "AggregatedResult",
    "FeedFetchError",
    "fetch_aggregated_feed",
    "get_source_stats",
    "CATEGORY_RULES",
    "infer_category",
    "FeedParser",
    "FeedSnapshot",
    "RefreshResult",
    "build_feed",
    "feed_cache_key",
    "refresh_feeds",
    "screen_snapshot",
    "CURATED_FEEDS",
]

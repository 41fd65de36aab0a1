from civiclens.services.heatmap import HeatmapExtractor, heatmap_weight
from civiclens.services.query_engine import IssueFilters, Located, SpatialQueryEngine, public_only
from civiclens.services.stats import StatsAggregator

__all__ = [
    'HeatmapExtractor',
    'heatmap_weight',
    'IssueFilters',
    'Located',
    'SpatialQueryEngine',
    'StatsAggregator',
    'public_only',
]

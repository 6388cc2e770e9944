"""
Segment scoring.

Each segment is a SegmentDefinition: a gate predicate that zeroes the score
of users who cannot belong to the segment, and a weighted sum over bounded
features whose weights add up to 1.0. Adding a segment means adding a gate
and a weight table here; nothing else in the pipeline changes.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional

import pandas as pd

from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

Gate = Callable[[pd.DataFrame], pd.Series]

# Cut-offs the flag names in DEFAULT_SEGMENT_WEIGHTS refer to
DEFAULT_LOW_PERCENTILE = 20
DEFAULT_HIGH_PERCENTILE = 80

@dataclass(frozen=True)
class SegmentDefinition:
    name: str
    gate: Gate
    weights: Mapping[str, float]

    def score(self, features: pd.DataFrame) -> pd.Series:
        """Weighted sum of the features, 0 wherever the gate closes."""
        weighted = pd.Series(0.0, index=features.index)
        for feature, weight in self.weights.items():
            weighted = weighted + features[feature].astype(float) * weight
        gated_out = self.gate(features).astype(bool)
        return weighted.where(~gated_out, 0.0).clip(0, 1)

def _no_bookings(features: pd.DataFrame) -> pd.Series:
    return features['booking_count'] == 0

def business_gate(features: pd.DataFrame) -> pd.Series:
    # Working age and at least half of the trips on weekdays
    return (features['is_in_working_age'] == 0) | (features['weekday_travel_share'] < 0.5)

def family_gate(features: pd.DataFrame) -> pd.Series:
    return features['is_family'] == 0

def deal_hunter_gate(features: pd.DataFrame) -> pd.Series:
    return features['discount_usage_rate'] == 0

def dreamer_gate(features: pd.DataFrame) -> pd.Series:
    return features['is_dreamer'] == 0

def new_gate(features: pd.DataFrame) -> pd.Series:
    return features['is_new_customer'] == 0

def young_gate(features: pd.DataFrame) -> pd.Series:
    return features['is_young_customer'] == 0

SEGMENT_GATES: Dict[str, Gate] = {
    'Budget': _no_bookings,
    'Business': business_gate,
    'Deal Hunter': deal_hunter_gate,
    'Dreamer': dreamer_gate,
    'Family': family_gate,
    'Frequent Traveler': _no_bookings,
    'New': new_gate,
    'Premium': _no_bookings,
    'Young': young_gate,
}

DEFAULT_SEGMENT_WEIGHTS: Dict[str, Dict[str, float]] = {
    'Budget': {
        'avg_cost_per_night_norm_invert': 0.35,
        'avg_cost_per_km_norm_invert': 0.35,
        'is_price_per_night_p20': 0.15,
        'is_price_per_km_p20': 0.15,
    },
    'Business': {
        'weekday_travel_share': 0.30,
        'avg_bags_norm_invert': 0.20,
        'avg_seats_norm_invert': 0.20,
        'is_quick_booker_p20': 0.20,
        'booking_count_norm': 0.10,
    },
    'Deal Hunter': {
        'discount_usage_rate': 0.50,
        'avg_clicks_norm': 0.30,
        'is_price_sensitive': 0.20,
    },
    'Dreamer': {
        'cancellation_rate': 0.40,
        'avg_minutes_norm': 0.30,
        'avg_clicks_norm': 0.30,
    },
    'Family': {
        'avg_seats_norm': 0.35,
        'avg_bags_norm': 0.25,
        'avg_rooms_norm': 0.20,
        'avg_nights_norm': 0.20,
    },
    'Frequent Traveler': {
        'booking_count_norm': 0.50,
        'is_frequent_p80': 0.30,
        'session_count_norm': 0.20,
    },
    'New': {
        'is_new_customer': 0.60,
        'session_count_norm_invert': 0.40,
    },
    'Premium': {
        'avg_cost_per_night_norm': 0.35,
        'avg_cost_per_km_norm': 0.35,
        'is_price_per_night_p80': 0.15,
        'is_price_per_km_p80': 0.15,
    },
    'Young': {
        'is_young_customer': 0.60,
        'avg_minutes_norm': 0.20,
        'avg_clicks_norm': 0.20,
    },
}

def default_segment_weights(low_percentile: int = DEFAULT_LOW_PERCENTILE,
                            high_percentile: int = DEFAULT_HIGH_PERCENTILE) -> Dict[str, Dict[str, float]]:
    """
    Copy of DEFAULT_SEGMENT_WEIGHTS with the percentile flags renamed to the
    given cut-offs, e.g. is_price_per_km_p20 -> is_price_per_km_p10.
    """
    renames = {
        f'_p{DEFAULT_LOW_PERCENTILE}': f'_p{low_percentile}',
        f'_p{DEFAULT_HIGH_PERCENTILE}': f'_p{high_percentile}',
    }
    tables = {}
    for name, weights in DEFAULT_SEGMENT_WEIGHTS.items():
        table = {}
        for feature, weight in weights.items():
            for old, new in renames.items():
                if feature.startswith('is_') and feature.endswith(old):
                    feature = feature[:-len(old)] + new
                    break
            table[feature] = weight
        tables[name] = table
    return tables

def build_segment_registry(weights: Optional[Mapping[str, Mapping[str, float]]] = None) -> Dict[str, SegmentDefinition]:
    """
    Combine the gates with a weight table.

    Args:
        weights: segment name -> {feature: weight}; defaults to DEFAULT_SEGMENT_WEIGHTS

    Returns:
        Segment name -> SegmentDefinition, in alphabetical order
    """
    if weights is None:
        weights = DEFAULT_SEGMENT_WEIGHTS
    return {
        name: SegmentDefinition(
            name=name,
            gate=SEGMENT_GATES[name],
            weights=MappingProxyType(dict(weights[name]))
        )
        for name in sorted(SEGMENT_GATES)
    }

def score_segments(features: pd.DataFrame, registry: Mapping[str, SegmentDefinition]) -> pd.DataFrame:
    """
    Score every user against every registered segment.

    Args:
        features: NormalizedFeatures with a user_id column
        registry: segment definitions from build_segment_registry()

    Returns:
        DataFrame indexed by user_id with one score column per segment
    """
    logger.info(f"Scoring {len(features)} users against {len(registry)} segments...")
    indexed = features.set_index('user_id')
    scores = pd.DataFrame(index=indexed.index)
    for name in sorted(registry):
        scores[name] = registry[name].score(indexed)

    logger.info(f"Mean segment scores:\n{scores.mean().round(3)}")
    return scores

"""
Cohort-relative feature normalization.

Normalization runs in two phases:

1. compute_cohort_norms() looks at the whole cohort once and freezes the
   percentile cut-offs and min/max ranges into a CohortNorms object.
2. normalize_features() is a per-user transform that takes those norms as
   an explicit argument.

Every segment score therefore shares the same percentile basis.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import MinMaxScaler

from .exceptions import EmptyCohortError
from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

# Flag stem -> profile column used for the percentile flags
PERCENTILE_FEATURES = {
    'quick_booker': 'avg_booking_lead_minutes',
    'clicker': 'avg_clicks_per_session',
    'browser': 'avg_minutes_per_session',
    'price_per_km': 'avg_cost_per_km',
    'price_per_night': 'avg_cost_per_night',
    'frequent': 'booking_count',
}

# Profile column -> min-max normalized feature
MINMAX_FEATURES = {
    'session_count': 'session_count_norm',
    'booking_count': 'booking_count_norm',
    'avg_clicks_per_session': 'avg_clicks_norm',
    'avg_minutes_per_session': 'avg_minutes_norm',
    'avg_booking_lead_minutes': 'avg_booking_lead_norm',
    'avg_cost_per_km': 'avg_cost_per_km_norm',
    'avg_cost_per_night': 'avg_cost_per_night_norm',
    'avg_seats_per_booking': 'avg_seats_norm',
    'avg_bags_per_booking': 'avg_bags_norm',
    'avg_rooms_per_booking': 'avg_rooms_norm',
    'avg_nights_per_booking': 'avg_nights_norm',
}

# Features where fewer is better for the segment that uses them
INVERTED_FEATURES = [
    'session_count',
    'avg_booking_lead_minutes',
    'avg_cost_per_km',
    'avg_cost_per_night',
    'avg_seats_per_booking',
    'avg_bags_per_booking',
]

# Profile rates that are already bounded to [0, 1]
RATE_FEATURES = ['discount_usage_rate', 'cancellation_rate', 'weekday_travel_share']

INDICATOR_FLAGS = [
    'is_in_working_age',
    'is_young_customer',
    'is_new_customer',
    'is_family',
    'is_dreamer',
    'is_price_sensitive',
    'is_premium_spender',
]

@dataclass(frozen=True)
class CohortNorms:
    """Cohort-wide statistics, computed once per run."""
    low_percentile: int
    high_percentile: int
    percentiles: Mapping[str, Tuple[float, float]]
    ranges: Mapping[str, Tuple[float, float]]
    degenerate_features: Tuple[str, ...]
    cohort_size: int

def flag_name(stem: str, percentile: int) -> str:
    return f'is_{stem}_p{percentile}'

def available_features(low_percentile: int = 20, high_percentile: int = 80) -> List[str]:
    """Every bounded feature and flag normalize_features() produces."""
    features = list(RATE_FEATURES)
    features += list(MINMAX_FEATURES.values())
    features += [f'{MINMAX_FEATURES[col]}_invert' for col in INVERTED_FEATURES]
    for stem in PERCENTILE_FEATURES:
        features += [flag_name(stem, low_percentile), flag_name(stem, high_percentile)]
    features += INDICATOR_FLAGS
    return features

def compute_percentiles(values: pd.Series, low: int, high: int) -> Tuple[float, float]:
    """Continuous (linearly interpolated) percentiles over the non-null values."""
    values = values.dropna()
    if values.empty:
        return (np.nan, np.nan)
    cut_offs = values.astype(float).quantile([low / 100, high / 100], interpolation='linear')
    return (float(cut_offs.iloc[0]), float(cut_offs.iloc[1]))

def compute_cohort_norms(profiles: pd.DataFrame, config) -> CohortNorms:
    """
    Compute the percentile cut-offs and min/max ranges of the cohort.

    Args:
        profiles: one UserProfile row per cohort user
        config: SegmentationConfig with the percentile cut-offs

    Returns:
        Immutable CohortNorms
    """
    if profiles.empty:
        raise EmptyCohortError("Cannot compute cohort statistics over an empty cohort")

    low, high = config.low_percentile, config.high_percentile
    logger.info(f"Computing p{low}/p{high} percentiles over {len(profiles)} users...")

    percentiles = {}
    for stem, column in PERCENTILE_FEATURES.items():
        percentiles[column] = compute_percentiles(profiles[column], low, high)
        if np.isnan(percentiles[column][0]):
            logger.warning(f"No observed values for {column}; its percentile flags stay 0")

    # Columns without a single observed value cannot be fitted
    observed = [col for col in MINMAX_FEATURES if profiles[col].notna().any()]
    ranges = {col: (np.nan, np.nan) for col in MINMAX_FEATURES}
    if observed:
        scaler = MinMaxScaler()
        scaler.fit(profiles[observed].astype(float))
        for col, col_min, col_max in zip(observed, scaler.data_min_, scaler.data_max_):
            ranges[col] = (float(col_min), float(col_max))

    degenerate = tuple(col for col in observed if ranges[col][0] == ranges[col][1])
    for col in degenerate:
        logger.warning(
            f"Degenerate range for {col} (all users at {ranges[col][0]:.2f}); "
            f"using neutral value {config.neutral_fill}"
        )

    return CohortNorms(
        low_percentile=low,
        high_percentile=high,
        percentiles=MappingProxyType(percentiles),
        ranges=MappingProxyType(ranges),
        degenerate_features=degenerate,
        cohort_size=len(profiles)
    )

def min_max_normalize(values: pd.Series, value_range: Tuple[float, float], neutral_fill: float = 0.5) -> pd.Series:
    """
    Rescale to [0, 1] against a fixed cohort range.

    A zero-width range maps every user to neutral_fill, including users
    without a value. Otherwise missing values map to 0.
    """
    col_min, col_max = value_range
    if np.isnan(col_min):
        return pd.Series(0.0, index=values.index)
    if col_max == col_min:
        return pd.Series(float(neutral_fill), index=values.index)
    normalized = (values - col_min) / (col_max - col_min)
    return normalized.clip(0, 1).fillna(0.0)

def normalize_features(profiles: pd.DataFrame, norms: CohortNorms, config) -> pd.DataFrame:
    """
    Derive bounded features and 0/1 flags for every user.

    Args:
        profiles: one UserProfile row per cohort user
        norms: statistics from compute_cohort_norms()
        config: SegmentationConfig with the demographic thresholds

    Returns:
        DataFrame of NormalizedFeatures (profile columns kept)
    """
    logger.info(f"Normalizing features for {len(profiles)} users...")
    df = profiles.copy()

    for col in RATE_FEATURES:
        df[col] = df[col].fillna(0.0).clip(0, 1)

    for col, feature in MINMAX_FEATURES.items():
        df[feature] = min_max_normalize(
            df[col].astype(float), norms.ranges[col], config.neutral_fill
        )
    for col in INVERTED_FEATURES:
        feature = MINMAX_FEATURES[col]
        if col in norms.degenerate_features:
            df[f'{feature}_invert'] = df[feature]
            continue
        # Missing raw values stay at 0 after inversion
        df[f'{feature}_invert'] = (1 - df[feature]).where(df[col].notna(), 0.0)

    low, high = norms.low_percentile, norms.high_percentile
    for stem, column in PERCENTILE_FEATURES.items():
        p_low, p_high = norms.percentiles[column]
        # Comparisons against NaN are False, so missing values never flag
        df[flag_name(stem, low)] = (df[column] < p_low).astype(int)
        df[flag_name(stem, high)] = (df[column] > p_high).astype(int)

    min_age, max_age = config.working_age
    df['is_in_working_age'] = df['age'].between(min_age, max_age).astype(int)
    df['is_young_customer'] = (df['age'] < config.young_age_cutoff).astype(int)
    df['is_new_customer'] = (df['days_since_signup'] <= config.new_customer_days).astype(int)
    df['is_family'] = df['has_children'].astype(bool).astype(int)

    # Only browses or cancels, never completes a booking
    df['is_dreamer'] = ((df['booking_count'] == 0) & (df['cancellation_count'] > 0)).astype(int)

    df['is_price_sensitive'] = (
        (df[flag_name('price_per_km', low)] == 1) | (df[flag_name('price_per_night', low)] == 1)
    ).astype(int)
    df['is_premium_spender'] = (
        (df[flag_name('price_per_km', high)] == 1) | (df[flag_name('price_per_night', high)] == 1)
    ).astype(int)

    return df

def describe_norms(norms: CohortNorms) -> Dict[str, Dict[str, float]]:
    """Flat view of the cohort statistics for logging and export."""
    summary = {}
    for column, (p_low, p_high) in norms.percentiles.items():
        summary.setdefault(column, {})
        summary[column][f'p{norms.low_percentile}'] = p_low
        summary[column][f'p{norms.high_percentile}'] = p_high
    for column, (col_min, col_max) in norms.ranges.items():
        summary.setdefault(column, {})
        summary[column]['min'] = col_min
        summary[column]['max'] = col_max
    return summary

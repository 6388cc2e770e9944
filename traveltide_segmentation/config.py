"""Segmentation settings and their validation."""
import json
import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .exceptions import ConfigurationError
from .normalization import available_features
from .scoring import DEFAULT_HIGH_PERCENTILE, DEFAULT_LOW_PERCENTILE, SEGMENT_GATES, default_segment_weights
from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

WEIGHT_TOLERANCE = 1e-6

# Define the run settings and their defaults
DEFAULT_CONFIG = {
    'cohort_start': '2023-01-04',
    'min_sessions': 7,           # exclusive: users need more sessions than this
    'low_percentile': DEFAULT_LOW_PERCENTILE,
    'high_percentile': DEFAULT_HIGH_PERCENTILE,
    'others_threshold': 0.3,
    'working_age': (18, 65),
    'young_age_cutoff': 25,
    'new_customer_days': 180,
    'neutral_fill': 0.5,
    'reference_date': None,      # None: latest session end in the data
}

@dataclass(frozen=True)
class SegmentationConfig:
    cohort_start: str = DEFAULT_CONFIG['cohort_start']
    min_sessions: int = DEFAULT_CONFIG['min_sessions']
    low_percentile: int = DEFAULT_CONFIG['low_percentile']
    high_percentile: int = DEFAULT_CONFIG['high_percentile']
    others_threshold: float = DEFAULT_CONFIG['others_threshold']
    working_age: Tuple[int, int] = DEFAULT_CONFIG['working_age']
    young_age_cutoff: int = DEFAULT_CONFIG['young_age_cutoff']
    new_customer_days: int = DEFAULT_CONFIG['new_customer_days']
    neutral_fill: float = DEFAULT_CONFIG['neutral_fill']
    reference_date: Optional[str] = DEFAULT_CONFIG['reference_date']
    # None: the default tables, with flag names following the percentiles above
    segment_weights: Optional[Dict[str, Dict[str, float]]] = None

    def __post_init__(self):
        if self.segment_weights is None:
            weights = default_segment_weights(self.low_percentile, self.high_percentile)
            object.__setattr__(self, 'segment_weights', weights)

    @classmethod
    def from_dict(cls, overrides: Dict) -> 'SegmentationConfig':
        """
        Build a config from a dict of overrides merged over the defaults.

        A segment listed under 'segment_weights' replaces that segment's whole
        weight table; segments not listed keep their defaults.
        """
        unknown = set(overrides) - set(DEFAULT_CONFIG) - {'segment_weights'}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        settings = dict(DEFAULT_CONFIG)
        settings.update({k: v for k, v in overrides.items() if k != 'segment_weights'})
        settings['working_age'] = tuple(settings['working_age'])

        weights = default_segment_weights(settings['low_percentile'], settings['high_percentile'])
        for name, table in overrides.get('segment_weights', {}).items():
            weights[name] = dict(table)
        return cls(segment_weights=weights, **settings)

def load_config(path: Optional[str] = None) -> SegmentationConfig:
    """Load a JSON config file; no path means the defaults."""
    if path is None:
        return SegmentationConfig()
    with open(path, 'r', encoding='utf-8') as f:
        overrides = json.load(f)
    logger.info(f"Loaded configuration overrides from {path}: {sorted(overrides)}")
    return SegmentationConfig.from_dict(overrides)

def validate_config(config: SegmentationConfig) -> None:
    """
    Check the configuration before any data is processed.

    Raises:
        ConfigurationError: on the first invalid setting found
    """
    if not isinstance(config.min_sessions, int) or config.min_sessions < 0:
        raise ConfigurationError(f"min_sessions must be a non-negative integer, got {config.min_sessions!r}")

    low, high = config.low_percentile, config.high_percentile
    if not all(isinstance(p, int) for p in (low, high)) or not 0 < low < high < 100:
        raise ConfigurationError(f"Percentiles must be integers with 0 < low < high < 100, got {low!r}/{high!r}")

    if not 0 <= config.others_threshold <= 1:
        raise ConfigurationError(f"others_threshold must lie in [0, 1], got {config.others_threshold!r}")
    if not 0 <= config.neutral_fill <= 1:
        raise ConfigurationError(f"neutral_fill must lie in [0, 1], got {config.neutral_fill!r}")

    min_age, max_age = config.working_age
    if min_age > max_age:
        raise ConfigurationError(f"working_age range is empty: {config.working_age!r}")
    if config.young_age_cutoff <= 0 or config.new_customer_days < 0:
        raise ConfigurationError("young_age_cutoff must be positive and new_customer_days non-negative")

    known_segments = set(SEGMENT_GATES)
    configured = set(config.segment_weights)
    if configured != known_segments:
        raise ConfigurationError(
            f"Segment weights must cover exactly {sorted(known_segments)}; "
            f"missing {sorted(known_segments - configured)}, unknown {sorted(configured - known_segments)}"
        )

    features = set(available_features(low, high))
    for name, weights in config.segment_weights.items():
        unknown = set(weights) - features
        if unknown:
            raise ConfigurationError(f"Segment '{name}' uses unknown features: {sorted(unknown)}")
        if any(w < 0 for w in weights.values()):
            raise ConfigurationError(f"Segment '{name}' has negative weights")
        total = sum(weights.values())
        if not math.isclose(total, 1.0, abs_tol=WEIGHT_TOLERANCE):
            raise ConfigurationError(f"Weights of segment '{name}' sum to {total:.6f}, expected 1.0")

    logger.info("Configuration validated")

"""Loading and structural validation of raw TravelTide session records."""
from typing import Tuple

import numpy as np
import pandas as pd
import psycopg2

from .utils import db_params, safe_db_decorator, setup_logging

# Setup logging
logger = setup_logging(__name__)

REQUIRED_COLUMNS = ['session_id', 'user_id', 'session_start', 'session_end']

ID_COLUMNS = ['session_id', 'user_id']

BOOLEAN_COLUMNS = [
    'flight_discount', 'hotel_discount', 'flight_booked', 'hotel_booked',
    'cancellation', 'married', 'has_children'
]

NUMERIC_COLUMNS = [
    'page_clicks', 'home_airport_lat', 'home_airport_lon',
    'destination_airport_lat', 'destination_airport_lon', 'seats',
    'checked_bags', 'base_fare_usd', 'nights', 'rooms', 'hotel_per_room_usd',
    'distance_km'
]

DATETIME_COLUMNS = [
    'session_start', 'session_end', 'birthdate', 'sign_up_date',
    'departure_time', 'return_time', 'check_in_time', 'check_out_time'
]

OPTIONAL_COLUMNS = [
    'trip_id', 'destination'
] + BOOLEAN_COLUMNS + NUMERIC_COLUMNS + [
    c for c in DATETIME_COLUMNS if c not in REQUIRED_COLUMNS
]

RAW_SESSIONS_QUERY = """
    SELECT
        s.session_id,
        s.user_id,
        s.trip_id,
        s.session_start,
        s.session_end,
        s.page_clicks,
        s.flight_discount,
        s.hotel_discount,
        s.flight_booked,
        s.hotel_booked,
        s.cancellation,
        u.birthdate,
        u.married,
        u.has_children,
        u.sign_up_date,
        u.home_airport_lat,
        u.home_airport_lon,
        f.destination,
        f.destination_airport_lat,
        f.destination_airport_lon,
        f.seats,
        f.checked_bags,
        f.departure_time,
        f.return_time,
        f.base_fare_usd,
        h.nights,
        h.rooms,
        h.check_in_time,
        h.check_out_time,
        h.hotel_per_room_usd
    FROM sessions s
    LEFT JOIN users u ON s.user_id = u.user_id
    LEFT JOIN flights f ON s.trip_id = f.trip_id
    LEFT JOIN hotels h ON s.trip_id = h.trip_id
    WHERE s.session_start >= %(cohort_start)s
"""

class DatabaseConnection:
    def __init__(self, params=None):
        self.params = params or db_params
        self.conn = None

    def __enter__(self):
        self.conn = psycopg2.connect(**self.params)
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn:
            self.conn.close()

@safe_db_decorator
def load_raw_sessions_from_db(connection, cohort_start: str) -> pd.DataFrame:
    """Load one row per session, joined with user, flight and hotel data."""
    logger.info(f"Loading raw sessions starting {cohort_start} from the database...")
    result = pd.read_sql_query(RAW_SESSIONS_QUERY, connection, params={'cohort_start': cohort_start})
    logger.info(f"Loaded {len(result)} raw session rows")
    return result

def load_raw_sessions_csv(path: str) -> pd.DataFrame:
    """Load raw session rows from a CSV export of the sessions query."""
    result = pd.read_csv(path)
    logger.info(f"Loaded {len(result)} raw session rows from {path}")
    return result

def _to_bool(series: pd.Series) -> pd.Series:
    if series.dtype == bool:
        return series
    mapped = series.map(
        lambda v: str(v).strip().lower() in ('true', 't', '1', '1.0', 'yes')
        if pd.notna(v) else False
    )
    return mapped.astype(bool)

def _restore_integer_ids(series: pd.Series) -> pd.Series:
    # A blank id in a CSV export turns the whole column into floats
    if pd.api.types.is_float_dtype(series) and (series % 1 == 0).all():
        return series.astype('int64')
    return series

def prepare_raw_sessions(raw: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
    """
    Coerce raw session columns to their types and drop malformed records.

    A record is malformed when it has no session or user identifier or when
    its session start/end timestamps cannot be parsed. Such rows cannot take
    part in the cohort computation and are counted instead.

    Args:
        raw: DataFrame of RawSession rows

    Returns:
        Tuple of (typed DataFrame of well-formed rows, number of malformed rows)
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in raw.columns]
    if missing:
        raise KeyError(f"Raw sessions are missing required columns: {missing}")

    df = raw.copy()
    for col in OPTIONAL_COLUMNS:
        if col in df.columns:
            continue
        if col in BOOLEAN_COLUMNS:
            df[col] = False
        elif col in DATETIME_COLUMNS:
            df[col] = pd.NaT
        else:
            df[col] = np.nan

    for col in DATETIME_COLUMNS:
        if not pd.api.types.is_datetime64_any_dtype(df[col]):
            df[col] = pd.to_datetime(df[col], errors='coerce', format='mixed')
    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors='coerce')
    for col in BOOLEAN_COLUMNS:
        df[col] = _to_bool(df[col])

    malformed_mask = (
        df['session_id'].isna() |
        df['user_id'].isna() |
        df['session_start'].isna() |
        df['session_end'].isna()
    )
    malformed_count = int(malformed_mask.sum())
    if malformed_count > 0:
        logger.warning(f"Excluding {malformed_count} malformed session records")

    df = df[~malformed_mask].reset_index(drop=True)
    for col in ID_COLUMNS:
        df[col] = _restore_integer_ids(df[col])
    logger.info(f"{len(df)} well-formed session records")
    return df, malformed_count

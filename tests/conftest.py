"""
Synthetic TravelTide sessions shared by the tests.

The cohort fixture holds one clear-cut user per behaviour:

    u1  Business           weekday trips booked a day ahead, light luggage
    u2  Family             children, 4 seats, 3 bags, 2 rooms, 7 nights
    u3  New                signed up 40 days before the reference date, aged 21, browses only
    u4  Dreamer            long browsing sessions and cancellations, no booking
    u5  Budget             cheapest fares and rooms, always on discount
    u6  (excluded)         exactly 7 sessions inside the window
    u7  Premium            most expensive fares and rooms, weekend trips

plus two malformed rows.
"""
import pandas as pd
import pytest

from traveltide_segmentation.config import SegmentationConfig

BASE_DATE = pd.Timestamp('2023-02-01 09:00:00')  # a Wednesday
REFERENCE_DATE = '2023-03-01'

USERS = {
    'u1': {'birthdate': '1985-03-10', 'sign_up_date': '2022-01-15', 'married': True, 'has_children': False},
    'u2': {'birthdate': '1980-07-22', 'sign_up_date': '2021-06-01', 'married': True, 'has_children': True},
    'u3': {'birthdate': '2001-05-05', 'sign_up_date': '2023-01-20', 'married': False, 'has_children': False},
    'u4': {'birthdate': '1970-11-30', 'sign_up_date': '2020-09-12', 'married': True, 'has_children': False},
    'u5': {'birthdate': '1995-06-15', 'sign_up_date': '2021-03-03', 'married': False, 'has_children': False},
    'u6': {'birthdate': '1990-01-01', 'sign_up_date': '2021-01-01', 'married': False, 'has_children': False},
    'u7': {'birthdate': '1964-05-01', 'sign_up_date': '2019-02-02', 'married': True, 'has_children': False},
}

class SessionBuilder:
    """Accumulates raw session rows in the shape of the sessions query."""

    def __init__(self):
        self.rows = []

    def _base(self, user_id, day, minutes, clicks):
        start = BASE_DATE + pd.Timedelta(days=day)
        row = {
            'session_id': f's{len(self.rows) + 1:04d}',
            'user_id': user_id,
            'session_start': start,
            'session_end': start + pd.Timedelta(minutes=minutes),
            'page_clicks': clicks,
            'flight_discount': False,
            'hotel_discount': False,
            'flight_booked': False,
            'hotel_booked': False,
            'cancellation': False,
        }
        row.update(USERS.get(user_id, {}))
        return row

    def browse(self, user_id, day, minutes=5, clicks=10, discount=False):
        row = self._base(user_id, day, minutes, clicks)
        row['flight_discount'] = discount
        self.rows.append(row)
        return self

    def book(self, user_id, day, lead_days=30, fare=400.0, distance_km=1000.0, seats=1, bags=0,
             nights=3, per_room=150.0, rooms=1, discount=False, cancel=False, minutes=10, clicks=20):
        row = self._base(user_id, day, minutes, clicks)
        departure = row['session_end'] + pd.Timedelta(days=lead_days)
        row.update({
            'trip_id': f"{row['session_id']}-trip",
            'flight_booked': True,
            'hotel_booked': True,
            'flight_discount': discount,
            'cancellation': cancel,
            'seats': seats,
            'checked_bags': bags,
            'departure_time': departure,
            'return_time': departure + pd.Timedelta(days=nights),
            'base_fare_usd': fare,
            'distance_km': distance_km,
            'nights': nights,
            'rooms': rooms,
            'check_in_time': departure,
            'check_out_time': departure + pd.Timedelta(days=nights),
            'hotel_per_room_usd': per_room,
        })
        self.rows.append(row)
        return self

    def frame(self):
        return pd.DataFrame(self.rows)

def build_cohort_sessions():
    builder = SessionBuilder()

    # u1: departures on days 1, 2, 6, 7 -> Thu, Fri, Tue, Wed
    for day in [0, 1, 5, 6]:
        builder.book('u1', day, lead_days=1, fare=300.0, distance_km=1500.0, seats=1, bags=0,
                     nights=2, per_room=200.0, rooms=1)
    for day in [2, 3, 4, 7, 8]:
        builder.browse('u1', day)

    for day in [0, 3, 6, 9]:
        builder.book('u2', day, lead_days=60, fare=600.0, distance_km=3000.0, seats=4, bags=3,
                     nights=7, per_room=100.0, rooms=2)
    for day in [1, 2, 4, 5, 7]:
        builder.browse('u2', day)

    for day in range(9):
        builder.browse('u3', day, minutes=15, clicks=25)

    for day in [0, 4, 8]:
        builder.book('u4', day, cancel=True)
    for day in [1, 2, 3, 5, 6, 7]:
        builder.browse('u4', day, minutes=60, clicks=80)

    for day in [0, 3, 6]:
        builder.book('u5', day, lead_days=30, fare=100.0, distance_km=2000.0, seats=1, bags=1,
                     nights=2, per_room=60.0, rooms=1, discount=True)
    for day in [1, 2, 4, 5, 7, 8]:
        builder.browse('u5', day, discount=True)

    # Two sessions before the window; 7 inside it
    builder.browse('u6', -40)
    builder.browse('u6', -39)
    for day in range(7):
        builder.browse('u6', day)

    # u7: departures on days 31, 32, 38 -> Sat, Sun, Sat
    for day in [1, 2, 8]:
        builder.book('u7', day, lead_days=30, fare=2000.0, distance_km=2000.0, seats=1, bags=0,
                     nights=3, per_room=500.0, rooms=1)
    for day in [0, 3, 4, 5, 6, 7]:
        builder.browse('u7', day)

    df = builder.frame()
    malformed = pd.DataFrame([
        {'session_id': 'bad1', 'user_id': None, 'session_start': BASE_DATE, 'session_end': BASE_DATE},
        {'session_id': 'bad2', 'user_id': 'u1', 'session_start': 'not a date', 'session_end': BASE_DATE},
    ])
    return pd.concat([df, malformed], ignore_index=True)

@pytest.fixture
def raw_sessions():
    return build_cohort_sessions()

@pytest.fixture
def session_builder():
    return SessionBuilder()

@pytest.fixture
def config():
    return SegmentationConfig(reference_date=REFERENCE_DATE)

def make_profiles(**columns):
    """UserProfile frame with neutral defaults for every column not given."""
    n = len(next(iter(columns.values())))
    defaults = {
        'user_id': [f'u{i}' for i in range(n)],
        'session_count': [9] * n,
        'booking_count': [1] * n,
        'cancellation_count': [0] * n,
        'cancellation_rate': [0.0] * n,
        'discount_usage_rate': [0.0] * n,
        'avg_minutes_per_session': [10.0] * n,
        'avg_clicks_per_session': [20.0] * n,
        'avg_booking_lead_minutes': [1440.0] * n,
        'avg_cost_per_km': [0.2] * n,
        'avg_cost_per_night': [150.0] * n,
        'avg_seats_per_booking': [1.0] * n,
        'avg_bags_per_booking': [1.0] * n,
        'avg_rooms_per_booking': [1.0] * n,
        'avg_nights_per_booking': [3.0] * n,
        'weekday_travel_share': [0.5] * n,
        'age': [40.0] * n,
        'age_bracket': ['35-44'] * n,
        'days_since_signup': [400.0] * n,
        'married': [False] * n,
        'has_children': [False] * n,
    }
    defaults.update(columns)
    return pd.DataFrame(defaults)

@pytest.fixture
def profiles_factory():
    return make_profiles

import numpy as np
import psycopg2
import pytest

from traveltide_segmentation.utils import haversine_distance, safe_db_decorator, timer_decorator

def test_haversine_zero_and_missing():
    distances = haversine_distance(
        np.array([51.47, np.nan]), np.array([-0.45, 2.0]),
        np.array([51.47, 48.0]), np.array([-0.45, 2.0]),
    )

    assert distances[0] == pytest.approx(0.0)
    assert np.isnan(distances[1])

def test_safe_db_decorator_reraises():
    @safe_db_decorator
    def failing_query():
        raise psycopg2.OperationalError("connection refused")

    with pytest.raises(psycopg2.OperationalError):
        failing_query()

def test_timer_decorator_keeps_result_and_name():
    @timer_decorator
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add.__name__ == 'add'

import json
from unittest.mock import MagicMock, patch

import redis

from school_attendance.infrastructure.cache import delete_cache, get_cache, schedule_key, set_cache


def test_schedule_key():
    assert schedule_key(7) == "schedule:class:7"


@patch('school_attendance.infrastructure.cache.get_redis')
def test_get_cache_hit(mock_redis):
    mock_client = MagicMock()
    mock_client.get.return_value = '{"class_id": 1}'
    mock_redis.return_value = mock_client

    assert get_cache("schedule:class:1") == {"class_id": 1}
    mock_client.get.assert_called_once_with("schedule:class:1")


@patch('school_attendance.infrastructure.cache.get_redis')
def test_get_cache_miss(mock_redis):
    mock_client = MagicMock()
    mock_client.get.return_value = None
    mock_redis.return_value = mock_client

    assert get_cache("schedule:class:1") is None


@patch('school_attendance.infrastructure.cache.get_redis')
def test_get_cache_redis_down(mock_redis):
    mock_client = MagicMock()
    mock_client.get.side_effect = redis.ConnectionError("refused")
    mock_redis.return_value = mock_client

    assert get_cache("schedule:class:1") is None


@patch('school_attendance.infrastructure.cache.get_redis')
def test_set_cache(mock_redis):
    mock_client = MagicMock()
    mock_redis.return_value = mock_client

    assert set_cache("schedule:class:1", {"schedule": {"monday": "9:00"}}, ttl=60) is True
    key, ttl, payload = mock_client.setex.call_args.args
    assert (key, ttl) == ("schedule:class:1", 60)
    assert json.loads(payload) == {"schedule": {"monday": "9:00"}}


@patch('school_attendance.infrastructure.cache.get_redis')
def test_set_cache_redis_down(mock_redis):
    mock_client = MagicMock()
    mock_client.setex.side_effect = redis.TimeoutError()
    mock_redis.return_value = mock_client

    assert set_cache("schedule:class:1", {"a": 1}) is False


@patch('school_attendance.infrastructure.cache.get_redis')
def test_delete_cache(mock_redis):
    mock_client = MagicMock()
    mock_redis.return_value = mock_client

    assert delete_cache("schedule:class:1") is True
    mock_client.delete.assert_called_once_with("schedule:class:1")

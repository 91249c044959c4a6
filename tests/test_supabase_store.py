import json
from datetime import datetime, timezone

import pytest
import requests

from oksnap.core.config import SupabaseConfig
from oksnap.core.errors import ExternalServiceError, TableNotFoundError
from oksnap.db.supabase import SupabaseRestClient
from oksnap.services.kv_store import SupabaseKeyValueStore

from http_fakes import FakeResponse, FakeSession


def _store(*responses):
    session = FakeSession(*responses)
    client = SupabaseRestClient(SupabaseConfig(url="https://db.example.co", key="service-key"), session=session)
    return SupabaseKeyValueStore(client), session


def test_get_parses_json_value():
    store, session = _store(FakeResponse(200, [{"key": "daily_scan:u1", "value": '{"count": 2, "date": "2024-01-01"}'}]))
    assert store.get("daily_scan:u1") == {"count": 2, "date": "2024-01-01"}

    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://db.example.co/rest/v1/rate_limits"
    assert call["params"]["key"] == "eq.daily_scan:u1"
    assert call["headers"]["apikey"] == "service-key"
    assert call["headers"]["Authorization"] == "Bearer service-key"
    assert call["timeout"] == 10


def test_get_missing_row_is_none():
    store, _ = _store(FakeResponse(200, []))
    assert store.get("daily_scan:u1") is None


def test_missing_table_reads_as_absent_and_skips_writes():
    store, _ = _store(FakeResponse(404, text="relation does not exist"), FakeResponse(406))
    assert store.get("daily_scan:u1") is None
    assert store.set("daily_scan:u1", {"count": 1}) is False


def test_legacy_row_is_rebuilt_from_columns():
    row = {"key": "daily_scan:u1", "value": None, "count": 4, "date_string": "2024-01-01",
           "level": "free", "bonus_applied": True}
    store, _ = _store(FakeResponse(200, [row]))
    assert store.get("daily_scan:u1") == {
        "count": 4,
        "resetTime": None,
        "date": "2024-01-01",
        "level": "free",
        "bonusApplied": True,
    }


def test_set_upserts_with_merge_duplicates():
    store, session = _store(FakeResponse(201, text=""))
    expires = datetime(2024, 1, 2, tzinfo=timezone.utc)
    value = {"count": 2, "date": "2024-01-01", "level": "guest"}

    assert store.set("daily_scan:ip_1.2.3.4", value, expires_at=expires) is True

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["headers"]["Prefer"] == "resolution=merge-duplicates"
    row = call["json"]
    assert row["key"] == "daily_scan:ip_1.2.3.4"
    assert json.loads(row["value"]) == value
    assert row["count"] == 2
    assert row["date"] == "2024-01-01"
    assert row["bonus_applied"] is False
    assert row["expires_at"] == "2024-01-02T00:00:00.000Z"


def test_delete_filters_by_key():
    store, session = _store(FakeResponse(204, text=""))
    assert store.delete("guest_scan:ip_1.2.3.4") is True
    assert session.calls[0]["method"] == "DELETE"
    assert session.calls[0]["params"] == {"key": "eq.guest_scan:ip_1.2.3.4"}


def test_transport_errors_propagate():
    store, _ = _store(requests.exceptions.ConnectTimeout("slow"), FakeResponse(500, text="oops"))
    with pytest.raises(ExternalServiceError) as exc:
        store.get("k")
    assert exc.value.timeout is True
    assert exc.value.status_code == 504

    with pytest.raises(ExternalServiceError) as exc:
        store.set("k", {"count": 1})
    assert exc.value.upstream_status == 500
    assert not isinstance(exc.value, TableNotFoundError)


def test_unconfigured_store_is_a_noop():
    store = SupabaseKeyValueStore(None)
    assert store.get("k") is None
    assert store.set("k", {"count": 1}) is False
    assert store.delete("k") is False


def test_unfiltered_delete_is_refused():
    client = SupabaseRestClient(SupabaseConfig(url="https://db.example.co", key="k"), session=FakeSession())
    with pytest.raises(ValueError):
        client.delete("rate_limits", {})


def test_default_transport_does_not_hold_a_session(monkeypatch):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url))
        return FakeResponse(200, [])

    monkeypatch.setattr(requests, "request", fake_request)
    client = SupabaseRestClient(SupabaseConfig(url="https://db.example.co", key="service-key"))

    assert not isinstance(client.session, requests.Session)
    assert client.select("recipes") == []
    assert calls == [("GET", "https://db.example.co/rest/v1/recipes")]

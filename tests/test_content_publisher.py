import json
from datetime import datetime, timezone

import pytest

from oksnap.core.errors import ExternalServiceError, IndexUpdateError, ValidationError
from oksnap.models.content import IndexEntry
from oksnap.services.content_publisher import INDEX_MAX_ATTEMPTS, upsert_entry

ARTIFACT = "public-site/blogs/kimchi-stew.html"
INDEX = "public-site/recipes.json"
PUBLISHED_AT = datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)


def _index(store):
    return json.loads(store.files[INDEX][0])


def test_publish_creates_artifact_and_index_entry(publisher, content_store):
    result = publisher.publish_if_absent("kimchi-stew", "<html>first</html>", "Kimchi Stew",
                                         published_at=PUBLISHED_AT)

    assert result.created
    assert result.status == "created"
    assert result.url == "https://ok-snap.com/blogs/kimchi-stew.html"
    assert result.commit_sha == "commit-1"
    assert result.index_commit_sha == "commit-2"
    assert content_store.files[ARTIFACT][0] == "<html>first</html>"
    assert _index(content_store) == [
        {
            "slug": "kimchi-stew",
            "title": "Kimchi Stew",
            "name": "Kimchi Stew",
            "url": "https://ok-snap.com/blogs/kimchi-stew.html",
            "createdAt": "2024-03-05",
        }
    ]


def test_second_publish_is_already_exists(publisher, content_store):
    publisher.publish_if_absent("kimchi-stew", "<html>first</html>", "Kimchi Stew")
    puts_after_first = len(content_store.puts)

    second = publisher.publish_if_absent("kimchi-stew", "<html>second</html>", "Kimchi Stew")

    assert second.status == "alreadyExists"
    assert second.url == "https://ok-snap.com/blogs/kimchi-stew.html"
    assert content_store.files[ARTIFACT][0] == "<html>first</html>"
    assert len(content_store.puts) == puts_after_first
    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew"]


def test_create_conflict_means_someone_else_won(publisher, content_store, monkeypatch):
    content_store.seed(ARTIFACT, "<html>winner</html>")
    # The existence check ran before the other writer committed
    monkeypatch.setattr(publisher, "find_existing", lambda slug: None)

    result = publisher.publish_if_absent("kimchi-stew", "<html>loser</html>", "Kimchi Stew")

    assert result.status == "alreadyExists"
    assert content_store.files[ARTIFACT][0] == "<html>winner</html>"
    assert INDEX not in content_store.files


def test_new_entries_are_prepended(publisher, content_store):
    content_store.seed(INDEX, json.dumps([{"slug": "bibimbap", "title": "Bibimbap", "url": "u"}]))
    publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew", "bibimbap"]


def test_existing_index_entry_is_replaced_in_place(publisher, content_store):
    content_store.seed(INDEX, json.dumps([
        {"slug": "bibimbap", "title": "Bibimbap", "url": "u1"},
        {"slug": "kimchi-stew", "title": "Old title", "url": "u2"},
        {"slug": "japchae", "title": "Japchae", "url": "u3"},
    ]))
    publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    entries = _index(content_store)
    assert [e["slug"] for e in entries] == ["bibimbap", "kimchi-stew", "japchae"]
    assert entries[1]["title"] == "Kimchi Stew"


def test_unparseable_index_is_replaced(publisher, content_store):
    content_store.seed(INDEX, "{not json")
    result = publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    assert result.created
    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew"]


def test_non_array_index_is_replaced(publisher, content_store):
    content_store.seed(INDEX, json.dumps({"recipes": []}))
    publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew"]


def test_index_conflicts_are_retried_with_a_fresh_read(publisher, content_store):
    content_store.forced_conflicts[INDEX] = 2

    result = publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")

    assert result.created
    assert len(content_store.puts_to(INDEX)) == 3
    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew"]


def test_concurrent_index_writer_is_not_lost(publisher, content_store):
    content_store.seed(INDEX, json.dumps([{"slug": "bibimbap", "title": "Bibimbap", "url": "u"}]))
    original_put = content_store.put_file
    raced = []

    def racing_put(path, text, message, sha=None):
        if path == INDEX and not raced:
            raced.append(True)
            # Another request lands its entry between our read and our write
            original_put(INDEX, json.dumps([{"slug": "japchae", "title": "Japchae", "url": "u"},
                                            {"slug": "bibimbap", "title": "Bibimbap", "url": "u"}]),
                         "other writer", sha=content_store.files[INDEX][1])
        return original_put(path, text, message, sha=sha)

    content_store.put_file = racing_put
    publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")

    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew", "japchae", "bibimbap"]


def test_exhausted_index_retries_fail_but_artifact_stays(publisher, content_store):
    content_store.forced_conflicts[INDEX] = INDEX_MAX_ATTEMPTS + 1

    with pytest.raises(IndexUpdateError) as exc:
        publisher.publish_if_absent("kimchi-stew", "<html>body</html>", "Kimchi Stew")

    assert exc.value.attempts == 3
    assert exc.value.status_code == 502
    assert exc.value.extra() == {
        "slug": "kimchi-stew",
        "url": "https://ok-snap.com/blogs/kimchi-stew.html",
        "partial": True,
    }
    assert len(content_store.puts_to(INDEX)) == 3
    assert content_store.files[ARTIFACT][0] == "<html>body</html>"


def test_non_conflict_index_failure_is_not_retried(publisher, content_store):
    content_store.write_failures[INDEX] = ExternalServiceError("boom", service="github", upstream_status=500)
    with pytest.raises(IndexUpdateError):
        publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    assert len(content_store.puts_to(INDEX)) == 1


def test_failed_artifact_write_aborts_before_index(publisher, content_store):
    content_store.write_failures[ARTIFACT] = ExternalServiceError("boom", service="github", upstream_status=500)
    with pytest.raises(ExternalServiceError) as exc:
        publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    assert not isinstance(exc.value, IndexUpdateError)
    assert ARTIFACT not in content_store.files
    assert content_store.puts_to(INDEX) == []


def test_invalid_slug_is_rejected(publisher, content_store):
    with pytest.raises(ValidationError):
        publisher.publish_if_absent("Kimchi Stew", "<html/>", "Kimchi Stew")
    assert content_store.puts == []


def test_find_existing(publisher, content_store):
    assert publisher.find_existing("kimchi-stew") is None
    content_store.seed(ARTIFACT, "<html/>")
    assert publisher.find_existing("kimchi-stew") == "https://ok-snap.com/blogs/kimchi-stew.html"


def test_empty_base_path_writes_at_branch_root(content_store):
    from oksnap.services.content_publisher import ContentPublisher

    content_store.base_path = ""
    publisher = ContentPublisher(content_store, "https://ok-snap.com/")
    publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    assert "blogs/kimchi-stew.html" in content_store.files
    assert "recipes.json" in content_store.files


def test_list_index_entries_skips_junk(publisher, content_store):
    content_store.seed(INDEX, json.dumps([{"slug": "bibimbap", "name": "Bibimbap", "url": "u"}, "junk", {}]))
    entries = publisher.list_index_entries()
    assert [(e.slug, e.title) for e in entries] == [("bibimbap", "Bibimbap")]


def test_upsert_entry_collapses_duplicates():
    entries = [{"slug": "a", "v": 1}, {"slug": "b"}, {"slug": "a", "v": 2}]
    assert upsert_entry(entries, {"slug": "a", "v": 3}) == [{"slug": "a", "v": 3}, {"slug": "b"}]


def test_existing_post_missing_from_index_is_restored(publisher, content_store):
    content_store.seed(ARTIFACT, "<html>first</html>")
    content_store.seed(INDEX, json.dumps([{"slug": "bibimbap", "title": "Bibimbap", "url": "u"}]))

    result = publisher.publish_if_absent("kimchi-stew", "<html>second</html>", "Kimchi Stew",
                                         published_at=PUBLISHED_AT)

    assert result.status == "alreadyExists"
    assert result.entry.slug == "kimchi-stew"
    assert result.index_commit_sha == "commit-1"
    assert content_store.files[ARTIFACT][0] == "<html>first</html>"
    assert [e["slug"] for e in _index(content_store)] == ["kimchi-stew", "bibimbap"]
    assert _index(content_store)[0]["createdAt"] == "2024-03-05"


def test_ensure_indexed_is_a_noop_when_listed(publisher, content_store):
    publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")
    puts = len(content_store.puts)
    assert publisher.ensure_indexed("kimchi-stew", "Kimchi Stew") is None
    assert len(content_store.puts) == puts


def test_failed_index_repair_still_reports_already_exists(publisher, content_store):
    content_store.seed(ARTIFACT, "<html/>")
    content_store.forced_conflicts[INDEX] = INDEX_MAX_ATTEMPTS

    result = publisher.publish_if_absent("kimchi-stew", "<html/>", "Kimchi Stew")

    assert result.status == "alreadyExists"
    assert result.entry is None
    assert INDEX not in content_store.files


def test_replace_index_retries_conflicts(publisher, content_store):
    content_store.seed(INDEX, json.dumps([{"slug": "gone", "title": "Gone", "url": "u"}]))
    content_store.forced_conflicts[INDEX] = 1
    entries = [IndexEntry(slug="japchae", title="Japchae", name="Japchae", url="u", created_at="2024-03-05")]

    assert publisher.replace_index(entries) == "commit-1"
    assert [e["slug"] for e in _index(content_store)] == ["japchae"]
    assert len(content_store.puts_to(INDEX)) == 2


def test_replace_index_failure_is_not_a_partial_publish(publisher, content_store):
    content_store.forced_conflicts[INDEX] = INDEX_MAX_ATTEMPTS
    with pytest.raises(IndexUpdateError) as exc:
        publisher.replace_index([])
    assert exc.value.extra() == {}

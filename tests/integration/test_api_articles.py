"""Integration tests for /articles routes."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from newsdesk.api.main import create_app
from newsdesk.cache import article_key, get_cache
from newsdesk.db.engine import get_session
from newsdesk.sync.reconcile import reconcile


def _record(article_id, *, publish_date, topics=(), title=None, status="Published", **extra):
    record = {
        "id": article_id,
        "title": title or f"Article {article_id}",
        "slug": f"article-{article_id.lower()}",
        "excerpt": f"Excerpt {article_id}",
        "publish_date": publish_date,
        "last_edited_time": f"{publish_date}T08:00:00.000Z",
        "author": ["Sipho Dlamini"],
        "topics": list(topics),
        "why_it_matters": "",
        "status": status,
        "cover_image": None,
        "content": [
            {"id": f"{article_id}-h", "type": "heading_2",
             "heading_2": {"rich_text": [{"plain_text": "Background", "annotations": {}}]}},
            {"id": f"{article_id}-x", "type": "callout", "callout": {"icon": None}},
        ],
    }
    record.update(extra)
    return record


@pytest.fixture(name="seeded_engine")
def seeded_engine_fixture(engine):
    reconcile([
        _record("A", publish_date="2025-01-10", topics=["Politics"], title="Budget vote delayed"),
        _record("B", publish_date="2025-01-12", topics=["Sport", "Rugby"], title="Rugby final tickets"),
        _record("C", publish_date="2025-01-14", topics=["Politics", "Economics"],
                title="Fuel price hike", why_it_matters="Transport costs rise for commuters."),
        _record("D", publish_date="2025-01-15", topics=["Sports"], title="Marathon route"),
        _record("E", publish_date="2025-01-16", topics=["Politics"], status="Draft"),
    ], engine, delete_missing=True)
    return engine


@pytest.fixture(name="client")
def client_fixture(seeded_engine):
    app = create_app(start_scheduler=False)

    def override_session():
        with Session(seeded_engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as c:
        yield c


class TestListArticles:
    def test_newest_first_and_published_only(self, client):
        body = client.get("/articles/").json()
        assert [a["id"] for a in body["articles"]] == ["D", "C", "B", "A"]
        assert body["has_more"] is False
        assert body["next_cursor"] is None

    def test_list_items_have_decoded_lists(self, client):
        first = client.get("/articles/").json()["articles"][0]
        assert first["topics"] == ["Sports"]
        assert first["author"] == ["Sipho Dlamini"]
        assert "content" not in first

    def test_pagination_with_offset_cursor(self, client):
        page1 = client.get("/articles/", params={"page_size": 3}).json()
        assert page1["has_more"] is True
        assert page1["next_cursor"] == "3"
        page2 = client.get("/articles/", params={"page_size": 3, "cursor": "3"}).json()
        assert [a["id"] for a in page2["articles"]] == ["A"]
        assert page2["has_more"] is False

    def test_bad_cursor_starts_from_beginning(self, client):
        body = client.get("/articles/", params={"cursor": "abc"}).json()
        assert body["articles"][0]["id"] == "D"

    def test_topic_filter_matches_whole_topic(self, client):
        body = client.get("/articles/", params={"topic": "Sport"}).json()
        assert [a["id"] for a in body["articles"]] == ["B"]

    def test_non_ascii_topic_filter_and_related(self, client, seeded_engine):
        reconcile([
            _record("F", publish_date="2025-02-01", topics=["Économie"]),
            _record("G", publish_date="2025-02-02", topics=["Économie", "Santé"]),
        ], seeded_engine, delete_missing=False)
        body = client.get("/articles/", params={"topic": "Économie"}).json()
        assert [a["id"] for a in body["articles"]] == ["G", "F"]
        assert body["articles"][0]["topics"] == ["Économie", "Santé"]
        related = client.get("/articles/article-g/related").json()
        assert [a["id"] for a in related] == ["F"]

    def test_unparseable_cursors_share_first_page_entry(self, client):
        first = client.get("/articles/").json()
        for i in range(20):
            assert client.get("/articles/", params={"cursor": f"junk{i}"}).json() == first
        assert len(get_cache()) == 1

    def test_listing_is_cached(self, client, seeded_engine):
        client.get("/articles/")
        reconcile([_record("F", publish_date="2025-02-01")], seeded_engine, delete_missing=False)
        assert client.get("/articles/").json()["articles"][0]["id"] == "D"
        get_cache().invalidate()
        assert client.get("/articles/").json()["articles"][0]["id"] == "F"


class TestGetArticle:
    def test_returns_content_and_typed_blocks(self, client):
        body = client.get("/articles/article-c").json()
        assert body["title"] == "Fuel price hike"
        assert len(body["content"]) == 2
        kinds = [b["kind"] for b in body["blocks"]]
        assert kinds == ["heading_2", "unknown"]
        assert body["blocks"][0]["rich_text"][0]["plain_text"] == "Background"

    def test_missing_slug_404(self, client):
        assert client.get("/articles/nope").status_code == 404

    def test_draft_not_served(self, client):
        assert client.get("/articles/article-e").status_code == 404

    def test_detail_is_cached(self, client):
        client.get("/articles/article-a")
        assert get_cache().get(article_key("article-a")) is not None


class TestTopics:
    def test_distinct_sorted(self, client):
        assert client.get("/articles/topics").json() == [
            "Economics", "Politics", "Rugby", "Sport", "Sports"
        ]

    def test_counts(self, client):
        counts = client.get("/articles/topics/counts").json()
        assert counts["Politics"] == 2
        assert counts["Rugby"] == 1


class TestSearch:
    def test_matches_title(self, client):
        body = client.get("/articles/search", params={"q": "rugby"}).json()
        assert [a["id"] for a in body["articles"]] == ["B"]
        assert body["total"] == 1

    def test_matches_why_it_matters(self, client):
        body = client.get("/articles/search", params={"q": "commuters"}).json()
        assert [a["id"] for a in body["articles"]] == ["C"]

    def test_punctuation_is_stripped(self, client):
        body = client.get("/articles/search", params={"q": '"fuel"*'}).json()
        assert body["total"] == 1

    @pytest.mark.parametrize("q", ["rugby OR", "NOT", "fuel AND", "NEAR(rugby"])
    def test_operator_words_are_plain_terms(self, client, q):
        resp = client.get("/articles/search", params={"q": q})
        assert resp.status_code == 200

    def test_operator_word_matches_literally(self, client):
        body = client.get("/articles/search", params={"q": "rugby OR"}).json()
        assert body["total"] == 0

    def test_empty_query_returns_nothing(self, client):
        body = client.get("/articles/search", params={"q": "!!!"}).json()
        assert body == {"articles": [], "has_more": False, "total": 0}


class TestRelated:
    def test_shares_a_topic_excludes_self(self, client):
        related = client.get("/articles/article-c/related").json()
        assert [a["id"] for a in related] == ["A"]

    def test_unknown_slug_is_empty(self, client):
        assert client.get("/articles/nope/related").json() == []


def test_cache_invalidate_endpoint(client):
    get_cache().set("articles:all:first", "x")
    resp = client.post("/articles/cache/invalidate")
    assert resp.json()["success"] is True
    assert len(get_cache()) == 0

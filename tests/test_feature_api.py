"""
Tests for the navigation endpoints and /health.
"""


class TestQuickTopicsEndpoint:
    def test_get_is_cached(self, client, fake_llm):
        first = client.get("/quick-topics")
        second = client.get("/quick-topics")

        assert first.status_code == 200
        body = first.json()
        assert body["success"] is True
        assert body["cached"] is True
        assert len(body["topics"]) == 5
        assert second.json()["topics"] == body["topics"]
        assert fake_llm.count("topics") == 1

    def test_refresh_regenerates(self, client, fake_llm):
        client.get("/quick-topics")
        response = client.post("/quick-topics/refresh")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["refreshed"] is True
        assert "cached" not in body
        assert fake_llm.count("topics") == 2

    def test_model_failure_serves_fallback(self, client, fake_llm):
        fake_llm.fail_on.add("topics")
        body = client.get("/quick-topics").json()
        assert body["success"] is True
        assert body["topics"][0]["topic"] == "OC4IDS standard"


class TestStarterQuestionsEndpoint:
    def test_get_and_refresh(self, client, fake_llm):
        got = client.get("/starter-questions").json()
        refreshed = client.post("/starter-questions/refresh").json()

        assert got["cached"] is True
        assert refreshed["refreshed"] is True
        assert len(got["questions"]) == 4
        assert fake_llm.count("questions") == 2


class TestSmartCollectionsEndpoint:
    def test_returns_collections(self, client):
        response = client.get("/collections/smart", params={"q": "oc4ids adoption"})
        assert response.status_code == 200
        collections = response.json()["collections"]
        assert collections[0]["name"] == "Standard Adoption Across Countries"
        assert collections[0]["items"][0]["url"] == "https://hub.example/oc4ids"

    def test_query_required(self, client):
        assert client.get("/collections/smart").status_code == 400
        assert client.get("/collections/smart", params={"q": "x"}).status_code == 400


class TestContextualFiltersEndpoint:
    def test_returns_suggestions(self, client):
        response = client.get("/filters/contextual", params={"q": "oc4ids guidance", "year": 2021})
        assert response.status_code == 200
        suggestions = response.json()["suggestions"]
        assert suggestions["spotlight"]["tone"] == "spotlight"
        assert suggestions["metadata_insights"]["timeline"]["newest_year"] == 2021
        for suggestion in suggestions["supporting"]:
            assert suggestion["tone"] in {"focus", "expand", "challenge"}

    def test_query_required(self, client):
        assert client.get("/filters/contextual", params={"q": " "}).status_code == 400


class TestHealth:
    def test_health(self, client, test_settings):
        body = client.get("/health").json()
        assert body["ok"] is True
        assert body["service"] == test_settings.app_name
        assert body["timestamp"].endswith("Z")

    def test_health_is_not_rate_limited(self, client):
        statuses = {client.get("/health").status_code for _ in range(10)}
        assert statuses == {200}

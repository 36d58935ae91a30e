"""
tests/test_api.py

HTTP-level tests for the workspace and insights routers using FastAPI's
TestClient. The store and analysis service are swapped through
``dependency_overrides`` so no network calls are made and no state leaks
between tests. Background tasks run before the client call returns.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_analysis, get_store
from app.main import app
from app.services.analysis_service import AnalysisService
from app.services.rate_limiter import IntervalRateLimiter
from app.services.workspace import WorkspacePhase, apply_mapping, initial_state, load_csv
from app.services.workspace_store import WorkspaceStore
from classification.adapter import BaseAnalyzer
from classification.errors import RATE_LIMIT_MESSAGE, AnalyzerConfigurationError
from classification.schema import Classification

SURVEY_CSV = (
    "text,date,region\n"
    "Great support,2024-01-01,EU\n"
    "Slow delivery,2024-01-03,US\n"
    '"Great, but slow refund",2024-01-09,EU\n'
    "boom,2024-01-10,US\n"
)


class KeywordAnalyzer(BaseAnalyzer):
    """Negative for texts mentioning "slow", failing for "boom", positive otherwise."""

    def classify(self, text: str) -> Classification:
        lowered = text.lower()
        if "boom" in lowered:
            raise RuntimeError("Error code: 429 - rate limit exceeded")
        if "slow" in lowered:
            return Classification(
                sentiment="negative",
                sentiment_score=-0.6,
                intent="complaint",
                emotions=["frustration"],
                topics=["Delivery & Logistics", "Delivery speed"],
                explanation="Slow service",
                confidence=85,
                redacted_excerpt=text,
            )
        return Classification(
            sentiment="positive",
            sentiment_score=0.8,
            intent="praise",
            emotions=["joy"],
            topics=["Customer Service / Support", "Issue resolution"],
            explanation="Happy customer",
            confidence=90,
            redacted_excerpt=text,
        )


def _unconfigured_analyzer() -> BaseAnalyzer:
    raise AnalyzerConfigurationError(
        "Analyzer client not initialized. Check API key (set LLM_API_KEY or OPENAI_API_KEY)."
    )


@pytest.fixture()
def store() -> WorkspaceStore:
    return WorkspaceStore()


@pytest.fixture()
def client(store: WorkspaceStore):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_analysis] = lambda: AnalysisService(
        store=store,
        analyzer_factory=KeywordAnalyzer,
        rate_limiter_factory=lambda: IntervalRateLimiter(min_interval_seconds=0),
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _upload(client: TestClient, content: str = SURVEY_CSV, filename: str = "survey.csv"):
    return client.post(
        "/workspaces/upload",
        files={"file": (filename, content.encode("utf-8"), "text/csv")},
    )


def _analyzed_workspace(client: TestClient, date_column: str | None = "date") -> str:
    workspace_id = _upload(client).json()["workspace_id"]
    client.put(
        f"/workspaces/{workspace_id}/mapping",
        json={"text_column": "text", "date_column": date_column, "dimension_columns": ["region"]},
    )
    client.post(f"/workspaces/{workspace_id}/analysis")
    return workspace_id


# ---------------------------------------------------------------------------
# Workspace lifecycle
# ---------------------------------------------------------------------------


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "analyzer": "mock"}


def test_upload_creates_workspace_in_mapping_phase(client: TestClient) -> None:
    response = _upload(client)

    assert response.status_code == 201
    body = response.json()
    assert body["phase"] == "mapping"
    assert body["file_name"] == "survey.csv"
    assert body["headers"] == ["text", "date", "region"]
    assert body["row_count"] == 4
    assert body["available_dimensions"] == ["text", "date", "region"]


def test_upload_reports_ragged_rows(client: TestClient) -> None:
    response = _upload(client, "text,region\nshort\nok,EU\n")

    assert response.status_code == 201
    assert response.json()["ragged_row_ids"] == [2]


def test_empty_upload_is_rejected_and_nothing_stored(client: TestClient, store: WorkspaceStore) -> None:
    response = _upload(client, "\n\n")

    assert response.status_code == 400
    assert "empty" in response.json()["detail"]
    assert len(store) == 0


def test_non_csv_upload_is_rejected(client: TestClient) -> None:
    response = client.post(
        "/workspaces/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Please upload a valid .csv file."


def test_unknown_workspace_is_404(client: TestClient) -> None:
    assert client.get("/workspaces/does-not-exist").status_code == 404
    assert client.post("/workspaces/does-not-exist/results", json={}).status_code == 404


def test_mapping_errors(client: TestClient) -> None:
    workspace_id = _upload(client).json()["workspace_id"]

    missing = client.put(f"/workspaces/{workspace_id}/mapping", json={"text_column": ""})
    unknown = client.put(f"/workspaces/{workspace_id}/mapping", json={"text_column": "comment"})

    assert missing.status_code == 400
    assert missing.json()["detail"] == "Please select the column for response text."
    assert unknown.status_code == 400


def test_analysis_before_mapping_is_conflict(client: TestClient) -> None:
    workspace_id = _upload(client).json()["workspace_id"]

    response = client.post(f"/workspaces/{workspace_id}/analysis")

    assert response.status_code == 409


def test_full_analysis_run(client: TestClient) -> None:
    workspace_id = _upload(client).json()["workspace_id"]

    mapped = client.put(
        f"/workspaces/{workspace_id}/mapping",
        json={"text_column": "text", "date_column": "date", "dimension_columns": ["region"]},
    )
    assert mapped.status_code == 200
    assert mapped.json()["available_dimensions"] == ["region"]

    started = client.post(f"/workspaces/{workspace_id}/analysis")
    assert started.status_code == 202
    assert started.json()["phase"] == "analyzing"

    body = client.get(f"/workspaces/{workspace_id}").json()
    assert body["phase"] == "results"
    assert body["progress"] == 100
    assert body["processed"] == 4
    assert body["cancelled"] is False


def test_cancel_without_running_analysis_is_conflict(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    assert client.post(f"/workspaces/{workspace_id}/analysis/cancel").status_code == 409


def test_configuration_error_returns_to_mapping(client: TestClient, store: WorkspaceStore) -> None:
    app.dependency_overrides[get_analysis] = lambda: AnalysisService(
        store=store,
        analyzer_factory=_unconfigured_analyzer,
        rate_limiter_factory=lambda: IntervalRateLimiter(min_interval_seconds=0),
    )
    workspace_id = _upload(client).json()["workspace_id"]
    client.put(f"/workspaces/{workspace_id}/mapping", json={"text_column": "text"})

    client.post(f"/workspaces/{workspace_id}/analysis")

    body = client.get(f"/workspaces/{workspace_id}").json()
    assert body["phase"] == "mapping"
    assert "API key" in body["error"]
    assert body["processed"] == 0


def _malformed_analyzer() -> BaseAnalyzer:
    raise ValueError("base_url is malformed")


def test_unexpected_run_failure_unlocks_workspace(client: TestClient, store: WorkspaceStore) -> None:
    app.dependency_overrides[get_analysis] = lambda: AnalysisService(
        store=store,
        analyzer_factory=_malformed_analyzer,
        rate_limiter_factory=lambda: IntervalRateLimiter(min_interval_seconds=0),
    )
    workspace_id = _upload(client).json()["workspace_id"]
    client.put(f"/workspaces/{workspace_id}/mapping", json={"text_column": "text"})

    client.post(f"/workspaces/{workspace_id}/analysis")

    body = client.get(f"/workspaces/{workspace_id}").json()
    assert body["phase"] == "mapping"
    assert body["error"] == "base_url is malformed"
    assert client.post(f"/workspaces/{workspace_id}/reset").status_code == 200


def test_reset_then_upload_again(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    reset = client.post(f"/workspaces/{workspace_id}/reset")
    assert reset.status_code == 200
    assert reset.json()["phase"] == "upload"
    assert client.post(f"/workspaces/{workspace_id}/results", json={}).status_code == 409

    again = client.post(
        f"/workspaces/{workspace_id}/upload",
        files={"file": ("second.csv", b"comment\nfine\n", "text/csv")},
    )
    assert again.status_code == 200
    assert again.json()["headers"] == ["comment"]


def test_upload_into_mapped_workspace_is_conflict(client: TestClient) -> None:
    workspace_id = _upload(client).json()["workspace_id"]

    response = client.post(
        f"/workspaces/{workspace_id}/upload",
        files={"file": ("second.csv", b"comment\nfine\n", "text/csv")},
    )

    assert response.status_code == 409


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


def test_results_summary(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    response = client.post(f"/workspaces/{workspace_id}/results?include_records=true", json={})

    assert response.status_code == 200
    body = response.json()
    assert body["total_responses"] == 4
    assert body["filter_description"] == "the entire dataset"
    assert body["sentiment_counts"] == [
        {"value": "negative", "count": 2},
        {"value": "positive", "count": 1},
    ]
    assert body["sentiment_total"] == 3
    assert body["topic_tree"][0]["name"] == "Delivery & Logistics"
    assert body["topic_tree"][0]["count"] == 2
    assert body["available_filters"] == {"region": ["EU", "US"]}
    assert body["min_date"].startswith("2024-01-01")
    assert body["max_date"].startswith("2024-01-10")
    failed = [record for record in body["records"] if record["error"]]
    assert [record["row_id"] for record in failed] == [5]
    assert failed[0]["error"] == RATE_LIMIT_MESSAGE


def test_ambiguous_dates_are_reported(client: TestClient) -> None:
    content = "text,date\nGreat support,5/6/2024\nSlow delivery,2024-01-03\nFine,25/12/2024\n"
    workspace_id = _upload(client, content=content).json()["workspace_id"]
    client.put(
        f"/workspaces/{workspace_id}/mapping",
        json={"text_column": "text", "date_column": "date"},
    )
    client.post(f"/workspaces/{workspace_id}/analysis")

    assert client.get(f"/workspaces/{workspace_id}").json()["ambiguous_dates"] == 1

    body = client.post(f"/workspaces/{workspace_id}/results?include_records=true", json={}).json()
    flags = {record["row_id"]: record["ambiguous_date"] for record in body["records"]}
    assert flags == {2: True, 3: False, 4: False}


def test_results_with_filters_and_topic_selection(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    response = client.post(
        f"/workspaces/{workspace_id}/results",
        json={
            "filters": {"region": "EU"},
            "date_from": "2024-01-01",
            "date_to": "2024-01-09",
            "selected_topic": "Delivery & Logistics",
        },
    )

    body = response.json()
    assert body["total_responses"] == 2
    assert body["filter_description"] == "region: EU"
    assert body["topic_chart"] == [{"value": "Delivery speed", "count": 1}]
    assert body["records"] == []


def test_weekly_trend(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    response = client.post(
        f"/workspaces/{workspace_id}/trend",
        json={"period": "week", "group_by": "sentiment"},
    )

    assert response.status_code == 200
    body = response.json()
    assert [date[:10] for date in body["dates"]] == ["2023-12-31", "2024-01-07"]
    assert body["keys"] == ["negative", "positive"]
    assert [bucket["counts"] for bucket in body["stacked"]] == [
        {"negative": 1, "positive": 1},
        {"negative": 1, "positive": 0},
    ]


def test_trend_requires_date_column(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client, date_column=None)

    response = client.post(f"/workspaces/{workspace_id}/trend", json={})

    assert response.status_code == 409


def test_trend_rejects_unknown_period(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    response = client.post(f"/workspaces/{workspace_id}/trend", json={"period": "quarter"})

    assert response.status_code == 422


def test_export_filtered_results(client: TestClient) -> None:
    workspace_id = _analyzed_workspace(client)

    response = client.post(f"/workspaces/{workspace_id}/export", json={"filters": {"region": "US"}})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "survey_analysis.csv" in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0] == (
        "rowId,text,date,region,sentiment,sentiment_score,intent,emotions,topics,"
        "explanation,confidence,redacted_excerpt"
    )
    assert lines[1].startswith("3,Slow delivery,2024-01-03,US,negative,-0.6,complaint,frustration,")
    assert lines[2] == "5,boom,2024-01-10,US,,,,,,,,"


def test_cancelled_run_keeps_finished_rows(store: WorkspaceStore) -> None:
    service = AnalysisService(
        store=store,
        analyzer_factory=KeywordAnalyzer,
        rate_limiter_factory=lambda: IntervalRateLimiter(min_interval_seconds=0),
    )
    state = load_csv(initial_state(), file_name="survey.csv", text=SURVEY_CSV)
    workspace_id = store.create(apply_mapping(state, text_column="text"))

    service.start(workspace_id)
    service.cancel(workspace_id)
    state = service.run(workspace_id)

    assert state.phase is WorkspacePhase.RESULTS
    assert state.cancelled
    assert state.results == ()

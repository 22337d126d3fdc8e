"""
Comprehensive integration tests for full request flow.
"""
import asyncio
import uuid
from datetime import datetime
from io import BytesIO

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from openpyxl import Workbook

from dataset_insights.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware
from main import app


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def sample_csv():
    """Sample CSV content for testing."""
    return b"date,revenue,region\n2024-01-01,1000,North\n2024-01-02,1200,South\n2024-01-03,1100,East"


@pytest.fixture
def sample_excel():
    """Workbook with a date, a product and a quantity column."""
    wb = Workbook()
    ws = wb.active
    ws.append(["order_date", "product", "qty"])
    ws.append([datetime(2024, 1, 1), "A", 5])
    ws.append([datetime(2024, 1, 10), "B", 7])
    ws.append([datetime(2024, 1, 20), "A", 12])
    ws.append([datetime(2024, 2, 1), "C", 6])
    ws.append([datetime(2024, 2, 10), "A", 2])
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.mark.integration
def test_full_upload_flow(client, sample_csv):
    """Test complete upload flow from file to chart suggestions."""
    correlation_id = str(uuid.uuid4())

    response = client.post(
        "/api/upload",
        files={"file": ("sales.csv", BytesIO(sample_csv), "text/csv")},
        headers={"X-Correlation-ID": correlation_id}
    )

    assert response.status_code == 200
    data = response.json()

    assert response.headers.get("X-Correlation-ID") == correlation_id

    assert data["filename"] == "sales.csv"
    assert data["rowCount"] == 3
    assert data["columnCount"] == 3
    assert len(data["preview"]) == 3

    columns = {c["column"]: c for c in data["analysis"]["columns"]}
    assert columns["date"]["type"] == "date"
    assert columns["date"]["summary"]["granularity"] == "day"
    assert columns["revenue"]["type"] == "number"
    assert columns["revenue"]["summary"]["sum"] == 3300
    assert columns["region"]["type"] == "string"
    assert columns["region"]["uniqueValues"] == 3

    suggestions = [(s["type"], s["label"]) for s in data["analysis"]["chartSuggestions"]]
    assert suggestions == [
        ("line", "revenue by date"),
        ("bar", "revenue by region"),
    ]


@pytest.mark.integration
def test_excel_upload_flow(client, sample_excel):
    """Workbook dates and numbers keep their native types through the analysis."""
    response = client.post(
        "/api/upload",
        files={"file": (
            "orders.xlsx",
            BytesIO(sample_excel),
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["fileType"] == "xlsx"
    assert data["rowCount"] == 5

    columns = {c["column"]: c for c in data["analysis"]["columns"]}
    assert columns["order_date"]["type"] == "date"
    assert columns["order_date"]["summary"] == {
        "start": "2024-01-01T00:00:00.000Z",
        "end": "2024-02-10T00:00:00.000Z",
        "granularity": "week",
    }
    assert columns["qty"]["summary"]["sum"] == 32
    assert columns["product"]["summary"]["topValues"][0] == {"value": "A", "count": 3}


@pytest.mark.integration
def test_repeated_uploads_are_identical(client, sample_csv):
    """The same file always produces the same analysis."""
    responses = [
        client.post(
            "/api/upload",
            files={"file": ("test.csv", BytesIO(sample_csv), "text/csv")}
        )
        for _ in range(2)
    ]

    assert all(r.status_code == 200 for r in responses)
    first, second = (r.json()["analysis"] for r in responses)
    assert first == second


@pytest.mark.integration
def test_upload_and_analyse_agree(client, sample_csv):
    """Uploading a file and posting its preview rows give the same analysis."""
    upload = client.post(
        "/api/upload",
        files={"file": ("test.csv", BytesIO(sample_csv), "text/csv")}
    ).json()

    analysed = client.post("/api/analyse", json={"rows": upload["preview"]}).json()

    assert analysed == upload["analysis"]


@pytest.mark.integration
def test_performance_metrics_endpoint(client, sample_csv):
    """Parsing and analysis stages are timed."""
    client.post(
        "/api/upload",
        files={"file": ("test.csv", BytesIO(sample_csv), "text/csv")}
    )
    response = client.get("/api/metrics")

    assert response.status_code == 200
    performance = response.json()["performance"]
    for name in ("parse_file", "analyse", "request_duration"):
        assert name in performance


@pytest.mark.integration
def test_error_handling_flow(client):
    """Test error handling in full flow."""
    response = client.post(
        "/api/upload",
        files={"file": ("test.txt", BytesIO(b"invalid content"), "text/plain")}
    )

    assert response.status_code == 400
    assert "X-Correlation-ID" in response.headers
    assert response.json()["detail"]["code"] == "INVALID_FILE_TYPE"


@pytest.mark.integration
def test_large_file_handling(client):
    """Test handling of larger files within limits."""
    rows = ["name,value"] + [f"row{i},{i}" for i in range(1000)]
    large_csv = "\n".join(rows).encode()

    response = client.post(
        "/api/upload",
        files={"file": ("large.csv", BytesIO(large_csv), "text/csv")}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["rowCount"] == 1000
    assert len(data["preview"]) == 50

    columns = {c["column"]: c for c in data["analysis"]["columns"]}
    assert columns["value"]["summary"]["count"] == 1000
    assert columns["name"]["uniqueValues"] == 1000
    assert len(columns["name"]["summary"]["topValues"]) == 5


@pytest.mark.integration
def test_numeric_only_file_gets_area_chart(client):
    """Two numeric columns and nothing else suggest one area chart."""
    csv_content = b"height,weight\n170,65\n180,80\n165,55"

    response = client.post(
        "/api/upload",
        files={"file": ("body.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 200
    suggestions = response.json()["analysis"]["chartSuggestions"]
    assert suggestions == [{
        "type": "area",
        "label": "height vs weight",
        "xAxis": "height",
        "yAxis": "weight",
        "description": "direct comparison",
    }]


@pytest.mark.integration
def test_text_only_file_gets_table(client):
    """Nothing chartable falls back to a table over every column."""
    csv_content = b"first,last\nAda,Lovelace\nAlan,Turing"

    response = client.post(
        "/api/upload",
        files={"file": ("names.csv", BytesIO(csv_content), "text/csv")}
    )

    assert response.status_code == 200
    suggestions = response.json()["analysis"]["chartSuggestions"]
    assert suggestions == [{
        "type": "table",
        "label": "Table view",
        "xAxis": "rows",
        "yAxis": ["first", "last"],
        "description": "basic exploration",
    }]


@pytest.mark.integration
def test_response_time_header(client, sample_csv):
    """Test that response time is included in headers."""
    response = client.post(
        "/api/upload",
        files={"file": ("test.csv", BytesIO(sample_csv), "text/csv")}
    )

    assert response.status_code == 200
    assert float(response.headers["X-Response-Time"]) >= 0


@pytest.mark.integration
def test_timeout_middleware_returns_504():
    """Slow handlers are cut off with a structured timeout error."""
    slow_app = FastAPI()
    slow_app.add_middleware(TimeoutMiddleware, timeout_seconds=0.05)
    slow_app.add_middleware(CorrelationIDMiddleware)

    @slow_app.get("/slow")
    async def slow():
        await asyncio.sleep(0.5)
        return {"done": True}

    response = TestClient(slow_app).get("/slow", headers={"X-Correlation-ID": "slow-1"})

    assert response.status_code == 504
    assert response.json()["code"] == "TIMEOUT"
    assert response.json()["correlation_id"] == "slow-1"


@pytest.mark.integration
def test_unhandled_error_returns_structured_500():
    """Exceptions escaping a handler become UNKNOWN_ERROR responses."""
    broken_app = FastAPI()
    broken_app.add_middleware(CorrelationIDMiddleware)

    @broken_app.get("/broken")
    async def broken():
        raise RuntimeError("boom")

    response = TestClient(broken_app, raise_server_exceptions=False).get("/broken")

    assert response.status_code == 500
    assert response.json()["code"] == "UNKNOWN_ERROR"
    assert "X-Correlation-ID" in response.headers

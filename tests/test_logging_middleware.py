import pytest
import json
import itertools
from fastapi import FastAPI, Request
from starlette.testclient import TestClient
from unittest.mock import patch, MagicMock
from recipebox.core.logging_middleware import StructuredLoggingMiddleware

# Setup a simple app for testing middleware
app = FastAPI()
app.add_middleware(StructuredLoggingMiddleware)


@app.get("/normal")
async def normal_request():
    return {"message": "ok"}


@app.get("/error")
async def error_request():
    raise ValueError("planned error")


@app.get("/authenticated")
async def authenticated_request(request: Request):
    # Simulate what the auth dependency does
    user = MagicMock()
    user.id = "google-oauth2|123"
    user.email = "test@example.com"
    user.first_name = "Test"
    user.last_name = "User"
    request.state.user = user
    return {"message": "authenticated"}


middleware_client = TestClient(app)


@pytest.fixture
def mock_logger():
    with patch("recipebox.core.logging_middleware.structured_logger") as mock:
        yield mock


def last_log(mock_logger) -> dict:
    return json.loads(mock_logger.info.call_args[0][0])


def test_logs_error_request(mock_logger):
    # BaseHTTPMiddleware re-raises, so the client sees the exception
    with pytest.raises(ValueError):
        middleware_client.get("/error")

    assert mock_logger.info.called
    log_data = last_log(mock_logger)
    assert log_data["status_code"] == 500
    assert "planned error" in log_data["error"]


def test_logs_slow_request(mock_logger):
    with patch("recipebox.core.logging_middleware.time") as mock_time:
        mock_time.perf_counter.side_effect = [1000.0, 1000.6]
        mock_time.time.return_value = 1700000000.0

        middleware_client.get("/normal")

    assert mock_logger.info.called
    log_data = last_log(mock_logger)
    assert log_data["duration_ms"] >= 500
    assert log_data["path"] == "/normal"
    assert log_data["user_id"] is None


def test_logs_authenticated_user(mock_logger):
    with patch("random.random", return_value=0.0):
        middleware_client.get("/authenticated")

    log_data = last_log(mock_logger)
    assert log_data["user_id"] == "google-oauth2|123"
    assert log_data["user_email"] == "test@example.com"
    assert log_data["user_name"] == "Test User"


def test_samples_normal_request(mock_logger):
    with (
        patch("random.random", return_value=0.01),
        patch("recipebox.core.logging_middleware.time") as mock_time,
    ):
        mock_time.perf_counter.side_effect = [100.0, 100.1]  # 100ms
        mock_time.time.return_value = 1700000000.0

        middleware_client.get("/normal?search=soup")

    assert mock_logger.info.called
    assert last_log(mock_logger)["query_params"] == {"search": "soup"}


def test_ignores_normal_request(mock_logger):
    with (
        patch("random.random", return_value=0.10),
        patch("recipebox.core.logging_middleware.time") as mock_time,
    ):
        # Use iterator to avoid StopIteration if framework makes extra calls
        mock_time.perf_counter.side_effect = itertools.count(start=100.0, step=0.1)
        mock_time.time.return_value = 1700000000.0

        middleware_client.get("/normal")

    assert not mock_logger.info.called


def test_recipe_api_logs_token_user(client, make_headers, mock_logger):
    # The real auth dependency fills request.state.user for the log line
    headers = make_headers("alice", email="alice@example.com", first_name="Alice")
    with patch("random.random", return_value=0.0):
        response = client.get("/api/recipes", headers=headers)

    assert response.status_code == 200
    log_data = last_log(mock_logger)
    assert log_data["path"] == "/api/recipes"
    assert log_data["user_id"] == "alice"
    assert log_data["user_email"] == "alice@example.com"
    assert log_data["user_name"] == "Alice"

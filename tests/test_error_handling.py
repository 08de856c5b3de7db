"""Infrastructure failures surface as generic 500s without internal detail."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from recipebox.main import app
from recipebox.storage import DatabaseStorage, get_storage


class BrokenStorage(DatabaseStorage):
    """User lookups work; every recipe operation hits a dead database."""

    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    search_recipes = _fail
    get_recipe = _fail
    create_recipe = _fail
    update_recipe = _fail
    delete_recipe = _fail


@pytest.fixture
def broken_client(storage):
    app.dependency_overrides[get_storage] = lambda: BrokenStorage(storage.session_factory)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.parametrize(
    "method, path, kwargs, message",
    [
        ("get", "/api/recipes", {}, "Failed to fetch recipes"),
        ("get", "/api/recipes/1", {}, "Failed to fetch recipe"),
        ("post", "/api/recipes", {"data": {"title": "Soup"}}, "Failed to create recipe"),
        ("put", "/api/recipes/1", {"data": {"title": "Soup"}}, "Failed to update recipe"),
        ("delete", "/api/recipes/1", {}, "Failed to delete recipe"),
    ],
)
def test_database_failure_is_generic_500(broken_client: TestClient, make_headers, method, path, kwargs, message):
    response = getattr(broken_client, method)(path, headers=make_headers("alice"), **kwargs)
    assert response.status_code == 500
    assert response.json() == {"detail": message}
    assert "locked" not in response.text


def test_non_integer_recipe_id_is_422(client: TestClient, make_headers):
    response = client.get("/api/recipes/abc", headers=make_headers("alice"))
    assert response.status_code == 422

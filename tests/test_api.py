import pytest
from fastapi.testclient import TestClient

from branchportal.agents import BranchAgent
from branchportal.api import app, get_branch_agent, get_trader_service
from branchportal.errors import TraderServiceError
from branchportal.seed_data import SEED_TRADERS

API_KEY = "test-secret"
HEADERS = {"x-api-key": API_KEY}


class EchoLLM:
    def generate_text(self, prompt, maxTokens=2000):
        return f"Seen {prompt.count('Trader:')} traders"


class BrokenService:
    max_upload_rows = 1000

    def get_traders(self, branch_id):
        raise TraderServiceError("Failed to get traders from database.")


@pytest.fixture
def client(service, monkeypatch):
    monkeypatch.setenv("TRADERS_API_KEY", API_KEY)
    app.dependency_overrides[get_trader_service] = lambda: service
    app.dependency_overrides[get_branch_agent] = lambda: BranchAgent(EchoLLM())
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# ----------------------------------------------------------------------
# /api/traders/{branch_id}
# ----------------------------------------------------------------------

def test_missing_api_key_is_401(client):
    response = client.get("/api/traders/PURLEY")
    assert response.status_code == 401
    assert "traders" not in response.json()


def test_wrong_api_key_is_403(client):
    response = client.get("/api/traders/PURLEY", headers={"x-api-key": "nope"})
    assert response.status_code == 403


def test_unconfigured_api_key_is_500(client, monkeypatch):
    monkeypatch.delenv("TRADERS_API_KEY")
    response = client.get("/api/traders/PURLEY", headers=HEADERS)
    assert response.status_code == 500


def test_invalid_branch_is_400(client):
    response = client.get("/api/traders/CROYDON", headers=HEADERS)
    assert response.status_code == 400
    assert "PURLEY" in response.json()["detail"]


def test_get_branch_traders(client):
    response = client.get("/api/traders/purley", headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["branchId"] == "PURLEY"
    assert body["traderCount"] == len(SEED_TRADERS)
    assert len(body["traders"]) == len(SEED_TRADERS)
    first = body["traders"][0]
    assert {"id", "branchId", "lastActivity", "callBackDate", "ownerName", "tasks"} <= set(first)


def test_store_failure_is_500(client):
    app.dependency_overrides[get_trader_service] = lambda: BrokenService()
    response = client.get("/api/traders/PURLEY", headers=HEADERS)
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch trader data from the database."


def test_branch_info(client):
    body = client.get("/api/branch-info/PURLEY MANAGER").json()
    assert body == {"loginId": "PURLEY MANAGER", "baseBranchId": "PURLEY", "branchName": "Purley Branch", "role": "manager"}


# ----------------------------------------------------------------------
# Portal endpoints
# ----------------------------------------------------------------------

def test_portal_requires_api_key(client):
    assert client.get("/api/branches/DOVER/traders").status_code == 401


def test_create_update_delete_trader(client):
    created = client.post(
        "/api/branches/DOVER/traders",
        json={"name": "Kent Roofing", "phone": "01304 555 100", "website": "https://kentroofing.example.co.uk"},
        headers=HEADERS,
    )
    assert created.status_code == 201
    trader = created.json()
    assert trader["phone"] == "01304555100"

    duplicate = client.post("/api/branches/DOVER/traders", json={"name": "Copycat", "phone": "01304555100"}, headers=HEADERS)
    assert duplicate.status_code == 409

    updated = client.put(
        f"/api/branches/DOVER/traders/{trader['id']}",
        json={"name": "Kent Roofing Ltd", "status": "Active"},
        headers=HEADERS,
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "Active"
    assert updated.json()["website"] == "https://kentroofing.example.co.uk"

    assert client.delete(f"/api/branches/DOVER/traders/{trader['id']}", headers=HEADERS).status_code == 204
    assert client.get(f"/api/branches/DOVER/traders/{trader['id']}", headers=HEADERS).status_code == 404


def test_create_trader_validation(client):
    short_name = client.post("/api/branches/DOVER/traders", json={"name": "A"}, headers=HEADERS)
    assert short_name.status_code == 422

    bad_url = client.post("/api/branches/DOVER/traders", json={"name": "Acme", "website": "acme"}, headers=HEADERS)
    assert bad_url.status_code == 422


def test_bulk_add_and_delete(client):
    drafts = [
        {"name": "One", "phone": "0201"},
        {"name": "Two", "phone": "0201"},
        {"name": "Three", "lastActivity": "01/02/24"},
    ]
    response = client.post("/api/branches/DOVER/traders/bulk", json=drafts, headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert (body["successCount"], body["skipped"], body["failureCount"]) == (2, 1, 0)
    assert body["added"][1]["lastActivity"] == "2024-02-01T00:00:00.000Z"

    ids = [t["id"] for t in body["added"]]
    deleted = client.post("/api/branches/DOVER/traders/bulk-delete", json={"traderIds": ids}, headers=HEADERS)
    assert deleted.json() == {"successCount": 2, "failureCount": 0, "error": None}


def test_csv_import(client):
    csv_text = "Name,Phone,Owner\nAcme,020 8660 1234,Sam\nAcme Again,(020) 8660-1234,Jo\n"
    response = client.post(
        "/api/branches/DOVER/traders/import",
        content=csv_text.encode("utf-8"),
        headers={**HEADERS, "Content-Type": "text/csv"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["successCount"] == 1
    assert body["skipped"] == 1
    assert body["added"][0]["ownerName"] == "Sam"


def test_csv_import_over_limit_is_400(client):
    rows = "".join(f"Trader {i},\n" for i in range(1001))
    response = client.post(
        "/api/branches/DOVER/traders/import",
        content=("Name,Phone\n" + rows).encode("utf-8"),
        headers={**HEADERS, "Content-Type": "text/csv"},
    )
    assert response.status_code == 400
    assert "Upload limit exceeded" in response.json()["detail"]


def test_financial_import(client):
    client.post("/api/branches/DOVER/traders/bulk", json=[{"name": "Acme"}], headers=HEADERS)
    response = client.post(
        "/api/branches/DOVER/financials/import",
        content=b"Name,Total Assets\nAcme,5000\nGhost,1\n",
        headers={**HEADERS, "Content-Type": "text/csv"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["updatedCount"] == 1
    assert body["notFoundNames"] == ["Ghost"]


def test_list_filter_and_export(client):
    listed = client.get("/api/branches/PURLEY/traders", params={"category": "Glazier"}, headers=HEADERS)
    assert [t["name"] for t in listed.json()] == ["ROMA JOINERY AND GLAZING LIMITED"]

    exported = client.get("/api/branches/PURLEY/traders/export", params={"search": "harris"}, headers=HEADERS)
    assert exported.status_code == 200
    assert exported.headers["content-type"].startswith("text/csv")
    assert "traders_export_PURLEY_" in exported.headers["content-disposition"]
    lines = exported.text.strip().splitlines()
    assert len(lines) == 2
    assert "HARRIS CARPENTRY LIMITED" in lines[1]


def test_categories_and_stats(client):
    categories = client.get("/api/branches/PURLEY/categories", headers=HEADERS).json()
    assert categories[0] == "All Categories"
    assert "Carpenter" in categories

    stats = client.get("/api/branches/PURLEY/stats", headers=HEADERS).json()
    assert stats["total"] == len(SEED_TRADERS)
    assert stats["byStatus"]["Call-Back"] == 1


def test_task_endpoints(client):
    trader = client.post("/api/branches/DOVER/traders", json={"name": "Task Co"}, headers=HEADERS).json()
    base = f"/api/branches/DOVER/traders/{trader['id']}/tasks"

    created = client.post(base, json={"title": "Call back", "dueDate": "2024-09-01T10:00:00Z"}, headers=HEADERS)
    assert created.status_code == 201
    task = created.json()
    assert task["dueDate"] == "2024-09-01T10:00:00.000Z"

    patched = client.patch(f"{base}/{task['id']}", json={"completed": True}, headers=HEADERS)
    assert patched.json()["completed"] is True

    assert [t["id"] for t in client.get(base, headers=HEADERS).json()] == [task["id"]]
    assert client.delete(f"{base}/{task['id']}", headers=HEADERS).status_code == 204
    assert client.delete(f"{base}/{task['id']}", headers=HEADERS).status_code == 404


def test_agent_query(client):
    response = client.post("/api/branches/PURLEY/agent/query", json={"query": "Who is overdue?"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json() == {"branchId": "PURLEY", "answer": f"Seen {len(SEED_TRADERS)} traders"}

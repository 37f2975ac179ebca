"""
FastAPI application exposing branch trader data and the portal's trader
management endpoints.
"""
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from . import config
from .agents import BranchAgent
from .branches import VALID_BRANCH_IDS, is_valid_branch, normalize_branch_id, resolve_branch
from .database import get_session_factory
from .errors import (
    AgentError,
    DuplicatePhoneError,
    ImportValidationError,
    TaskNotFoundError,
    TraderNotFoundError,
)
from .exporter import count_by_status, export_filename, export_traders_csv, filter_traders, list_categories
from .llm import BedrockLLM
from .schemas import (
    CamelModel,
    TaskCreate,
    TaskRecord,
    TaskUpdate,
    TraderDraft,
    TraderForm,
    TraderRecord,
)
from .trader_service import TraderService
from .utils.normalize import format_iso, utcnow

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="Branch Portal Trader API",
    description="Branch-scoped trader management, bulk import and export",
    version="0.1.0"
)

# ============================================================================
# Pydantic Models (Request/Response)
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str


class TraderListResponse(CamelModel):
    """Payload of the internal trader data endpoint."""
    branch_id: str
    trader_count: int
    traders: List[TraderRecord]


class BulkAddResponse(CamelModel):
    added: List[TraderRecord]
    skipped: int
    dropped: int = 0
    success_count: int
    failure_count: int
    error: Optional[str] = None


class BulkDeleteRequest(CamelModel):
    trader_ids: List[str] = Field(default_factory=list)


class BatchResponse(CamelModel):
    success_count: int
    failure_count: int
    error: Optional[str] = None


class FinancialUpdateResponse(CamelModel):
    updated_count: int
    not_found_count: int
    not_found_names: List[str]
    failure_count: int
    error: Optional[str] = None


class AgentQueryRequest(CamelModel):
    query: str = Field(..., min_length=1)
    uploaded_file_content: Optional[str] = None
    website_url: Optional[str] = None


class AgentQueryResponse(CamelModel):
    branch_id: str
    answer: str


class BranchInfoResponse(CamelModel):
    login_id: Optional[str]
    base_branch_id: Optional[str]
    branch_name: str
    role: str


# ============================================================================
# Dependencies
# ============================================================================

def get_trader_service() -> TraderService:
    return TraderService(get_session_factory())


def get_branch_agent() -> BranchAgent:
    return BranchAgent(BedrockLLM())


def require_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """Compare the ``x-api-key`` header against the configured secret."""
    expected = config.get_api_key()
    if not expected:
        logger.error("TRADERS_API_KEY is not configured; rejecting request")
        raise HTTPException(status_code=500, detail="Server configuration error: API key is not set.")
    if x_api_key is None:
        raise HTTPException(status_code=401, detail="Unauthorized: Missing API Key.")
    if x_api_key != expected:
        raise HTTPException(status_code=403, detail="Forbidden: Invalid API Key.")


def _branch_or_400(branch_id: str) -> str:
    if not is_valid_branch(branch_id):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid branchId. Must be one of: {', '.join(VALID_BRANCH_IDS)}"
        )
    return normalize_branch_id(branch_id)


def _http_error(exc: Exception, action: str) -> HTTPException:
    """Translate a service exception into the matching HTTP error."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, (TraderNotFoundError, TaskNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DuplicatePhoneError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ImportValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, AgentError):
        return HTTPException(status_code=502, detail=str(exc))
    logger.exception("%s failed", action)
    return HTTPException(status_code=500, detail=f"{action} failed: {exc}")


async def _read_text_body(request: Request) -> str:
    raw = await request.body()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Uploaded file must be UTF-8 encoded text.")


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": format_iso(utcnow())
    }


# ============================================================================
# Internal Trader Data Endpoint
# ============================================================================

@app.get("/api/traders/{branch_id}", response_model=TraderListResponse, dependencies=[Depends(require_api_key)])
async def get_branch_traders(
    branch_id: str,
    service: TraderService = Depends(get_trader_service),
) -> TraderListResponse:
    """
    Return every trader of a branch for internal tools.

    Args:
        branch_id: Base branch id (case-insensitive)

    Returns:
        TraderListResponse with branch id, trader count and the trader list
    """
    branch_id = _branch_or_400(branch_id)
    try:
        traders = service.get_traders(branch_id)
    except Exception:
        logger.exception("[API ERROR /api/traders/%s]", branch_id)
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch trader data from the database."
        )
    return TraderListResponse(branch_id=branch_id, trader_count=len(traders), traders=traders)


@app.get("/api/branch-info/{login_id}", response_model=BranchInfoResponse)
async def get_branch_info(login_id: str, email: Optional[str] = Query(None)) -> BranchInfoResponse:
    """Resolve a login id (e.g. ``PURLEY MANAGER``) to its base branch and role."""
    return BranchInfoResponse(**asdict(resolve_branch(login_id, email)))


# ============================================================================
# Branch Portal Endpoints
# ============================================================================

portal = APIRouter(prefix="/api/branches/{branch_id}", dependencies=[Depends(require_api_key)])


@portal.get("/traders", response_model=List[TraderRecord])
async def list_traders(
    branch_id: str,
    search: Optional[str] = Query(None, description="Free-text search"),
    category: Optional[str] = Query(None, description="Category filter"),
    service: TraderService = Depends(get_trader_service),
) -> List[TraderRecord]:
    branch_id = _branch_or_400(branch_id)
    try:
        return filter_traders(service.get_traders(branch_id), search=search, category=category)
    except Exception as e:
        raise _http_error(e, "Listing traders")


@portal.get("/traders/export")
async def export_traders(
    branch_id: str,
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    service: TraderService = Depends(get_trader_service),
) -> Response:
    """Download the (filtered) trader table as CSV."""
    branch_id = _branch_or_400(branch_id)
    try:
        traders = filter_traders(service.get_traders(branch_id), search=search, category=category)
    except Exception as e:
        raise _http_error(e, "Exporting traders")
    return Response(
        content=export_traders_csv(traders),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(branch_id)}"'},
    )


@portal.get("/categories", response_model=List[str])
async def get_categories(branch_id: str, service: TraderService = Depends(get_trader_service)) -> List[str]:
    branch_id = _branch_or_400(branch_id)
    try:
        return list_categories(service.get_traders(branch_id))
    except Exception as e:
        raise _http_error(e, "Listing categories")


@portal.get("/stats", response_model=Dict[str, Any])
async def get_stats(branch_id: str, service: TraderService = Depends(get_trader_service)) -> Dict[str, Any]:
    """Trader counts by status for a branch."""
    branch_id = _branch_or_400(branch_id)
    try:
        traders = service.get_traders(branch_id)
    except Exception as e:
        raise _http_error(e, "Getting stats")
    return {
        "branchId": branch_id,
        "total": len(traders),
        "byStatus": count_by_status(traders),
        "timestamp": format_iso(utcnow())
    }


@portal.get("/traders/{trader_id}", response_model=TraderRecord)
async def get_trader(branch_id: str, trader_id: str, service: TraderService = Depends(get_trader_service)) -> TraderRecord:
    branch_id = _branch_or_400(branch_id)
    try:
        return service.get_trader(branch_id, trader_id)
    except Exception as e:
        raise _http_error(e, "Retrieving trader")


@portal.post("/traders", response_model=TraderRecord, status_code=201)
async def create_trader(branch_id: str, form: TraderForm, service: TraderService = Depends(get_trader_service)) -> TraderRecord:
    branch_id = _branch_or_400(branch_id)
    try:
        return service.add_trader(branch_id, form)
    except Exception as e:
        raise _http_error(e, "Adding trader")


@portal.put("/traders/{trader_id}", response_model=TraderRecord)
async def update_trader(
    branch_id: str,
    trader_id: str,
    form: TraderForm,
    service: TraderService = Depends(get_trader_service),
) -> TraderRecord:
    branch_id = _branch_or_400(branch_id)
    try:
        return service.update_trader(branch_id, trader_id, form)
    except Exception as e:
        raise _http_error(e, "Updating trader")


@portal.delete("/traders/{trader_id}", status_code=204)
async def delete_trader(branch_id: str, trader_id: str, service: TraderService = Depends(get_trader_service)) -> Response:
    branch_id = _branch_or_400(branch_id)
    try:
        service.delete_trader(branch_id, trader_id)
    except Exception as e:
        raise _http_error(e, "Deleting trader")
    return Response(status_code=204)


@portal.post("/traders/bulk", response_model=BulkAddResponse)
async def bulk_add_traders(
    branch_id: str,
    drafts: List[TraderDraft],
    service: TraderService = Depends(get_trader_service),
) -> BulkAddResponse:
    """
    Create many traders at once from already-mapped drafts.

    Drafts whose phone already exists in the branch (or earlier in the list)
    are skipped and counted, never rejected.
    """
    branch_id = _branch_or_400(branch_id)
    try:
        if len(drafts) > service.max_upload_rows:
            raise HTTPException(
                status_code=400,
                detail=f"Upload limit exceeded: {len(drafts)} records sent but the limit is {service.max_upload_rows}."
            )
        result = service.bulk_add_traders(branch_id, drafts)
    except Exception as e:
        raise _http_error(e, "Bulk add")
    return BulkAddResponse(**asdict(result))


@portal.post("/traders/import", response_model=BulkAddResponse)
async def import_traders(
    branch_id: str,
    request: Request,
    service: TraderService = Depends(get_trader_service),
) -> BulkAddResponse:
    """Bulk import from a raw CSV request body (``Content-Type: text/csv``)."""
    branch_id = _branch_or_400(branch_id)
    text = await _read_text_body(request)
    try:
        result = service.import_traders_csv(branch_id, text)
    except Exception as e:
        raise _http_error(e, "CSV import")
    return BulkAddResponse(**asdict(result))


@portal.post("/traders/bulk-delete", response_model=BatchResponse)
async def bulk_delete_traders(
    branch_id: str,
    payload: BulkDeleteRequest,
    service: TraderService = Depends(get_trader_service),
) -> BatchResponse:
    branch_id = _branch_or_400(branch_id)
    try:
        result = service.bulk_delete_traders(branch_id, payload.trader_ids)
    except Exception as e:
        raise _http_error(e, "Bulk delete")
    return BatchResponse(success_count=result.success_count, failure_count=result.failure_count, error=result.error)


@portal.post("/financials/import", response_model=FinancialUpdateResponse)
async def import_financials(
    branch_id: str,
    request: Request,
    service: TraderService = Depends(get_trader_service),
) -> FinancialUpdateResponse:
    """Update financial estimates from a raw CSV body keyed by trader name."""
    branch_id = _branch_or_400(branch_id)
    text = await _read_text_body(request)
    try:
        result = service.import_financials_csv(branch_id, text)
    except Exception as e:
        raise _http_error(e, "Financial update")
    return FinancialUpdateResponse(**asdict(result))


# ============================================================================
# Task Endpoints
# ============================================================================

@portal.get("/traders/{trader_id}/tasks", response_model=List[TaskRecord])
async def list_tasks(branch_id: str, trader_id: str, service: TraderService = Depends(get_trader_service)) -> List[TaskRecord]:
    branch_id = _branch_or_400(branch_id)
    try:
        return service.list_tasks(branch_id, trader_id)
    except Exception as e:
        raise _http_error(e, "Listing tasks")


@portal.post("/traders/{trader_id}/tasks", response_model=TaskRecord, status_code=201)
async def create_task(
    branch_id: str,
    trader_id: str,
    task: TaskCreate,
    service: TraderService = Depends(get_trader_service),
) -> TaskRecord:
    branch_id = _branch_or_400(branch_id)
    try:
        return service.create_task(branch_id, trader_id, task)
    except Exception as e:
        raise _http_error(e, "Creating task")


@portal.patch("/traders/{trader_id}/tasks/{task_id}", response_model=TaskRecord)
async def update_task(
    branch_id: str,
    trader_id: str,
    task_id: str,
    changes: TaskUpdate,
    service: TraderService = Depends(get_trader_service),
) -> TaskRecord:
    branch_id = _branch_or_400(branch_id)
    try:
        return service.update_task(branch_id, trader_id, task_id, changes)
    except Exception as e:
        raise _http_error(e, "Updating task")


@portal.delete("/traders/{trader_id}/tasks/{task_id}", status_code=204)
async def delete_task(
    branch_id: str,
    trader_id: str,
    task_id: str,
    service: TraderService = Depends(get_trader_service),
) -> Response:
    branch_id = _branch_or_400(branch_id)
    try:
        service.delete_task(branch_id, trader_id, task_id)
    except Exception as e:
        raise _http_error(e, "Deleting task")
    return Response(status_code=204)


# ============================================================================
# Agent Endpoint
# ============================================================================

@portal.post("/agent/query", response_model=AgentQueryResponse)
async def agent_query(
    branch_id: str,
    payload: AgentQueryRequest,
    service: TraderService = Depends(get_trader_service),
    agent: BranchAgent = Depends(get_branch_agent),
) -> AgentQueryResponse:
    """Answer a free-text question about the branch's traders."""
    branch_id = _branch_or_400(branch_id)
    try:
        traders = service.get_traders(branch_id)
        answer = agent.answer(
            payload.query,
            traders,
            uploaded_file_content=payload.uploaded_file_content,
            branch_id=branch_id,
            website_url=payload.website_url,
        )
    except Exception as e:
        raise _http_error(e, "Agent query")
    return AgentQueryResponse(branch_id=branch_id, answer=answer)


app.include_router(portal)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "branchportal.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )

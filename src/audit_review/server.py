"""FastAPI server exposing reconciliation, suppression and assignment."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from audit_review.cache import SnapshotCache
from audit_review.config import Settings, load_settings
from audit_review.models import PullRequestRef, ResearchersConfig
from audit_review.service import NotConfiguredError, ReviewService
from audit_review.source import GitHubCommentSource, SourceError
from audit_review.storage import DataStore

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> ReviewService:
    return ReviewService(
        DataStore(settings.data_dir, settings.config_file),
        GitHubCommentSource(settings.github_token, url=settings.graphql_url),
        cache=SnapshotCache(settings.cache_ttl_seconds),
    )


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


def _parse_index(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid PR index")


def _parse_ref(body: dict[str, Any], number_key: str = "pullRequestNumber") -> PullRequestRef:
    owner, repo, number = body.get("owner"), body.get("repo"), body.get(number_key)
    if not owner or not repo or not number:
        raise HTTPException(status_code=400, detail="Missing required fields")
    try:
        return PullRequestRef(owner=owner, repo=repo, number=int(number), label=body.get("label") or "")
    except (ValidationError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


def _source_error_response(error: SourceError) -> JSONResponse:
    if error.rate_limited:
        return JSONResponse(
            {"detail": "GitHub API rate limit exceeded. Please wait and try again later.", "is_rate_limit": True},
            status_code=429,
        )
    return JSONResponse({"detail": str(error)}, status_code=502)


def create_app(settings: Settings | None = None, *, service: ReviewService | None = None) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or load_settings()
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.close()

    app = FastAPI(title="Audit Review", version="0.1.0", lifespan=lifespan)
    app.state.service = service

    # ------------------------------------------------------------------
    # Reconciled data
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def api_health():
        return JSONResponse({"status": "ok", "suppressions": len(service.suppressions)})

    @app.get("/api/data")
    async def api_data(prIndex: int = 0, force: bool = False):
        try:
            envelope = await service.report(prIndex, force=force)
        except NotConfiguredError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SourceError as e:
            logger.error("Error fetching data: %s", e)
            return _source_error_response(e)
        return JSONResponse(envelope.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    @app.post("/api/undupe")
    async def api_undupe(request: Request):
        body = await _json_object(request)
        comment_url = body.get("commentUrl")
        duplicate_of = body.get("duplicateOf")
        if not comment_url or not duplicate_of:
            raise HTTPException(status_code=400, detail="commentUrl and duplicateOf are required")
        added = service.suppress(comment_url, duplicate_of)
        return JSONResponse({"success": True, "added": added})

    @app.post("/api/save-assignment")
    async def api_save_assignment(request: Request):
        body = await _json_object(request)
        urls = list(body.get("urls") or [])
        if body.get("url"):
            urls.append(body["url"])
        if not urls:
            raise HTTPException(status_code=400, detail="urls is required")
        owner = str(body.get("assignedTo") or "")
        try:
            targets = await service.set_owner(_parse_index(body.get("prIndex")), urls, owner)
        except NotConfiguredError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SourceError as e:
            return _source_error_response(e)
        return JSONResponse({"success": True, "urls": sorted(targets), "assignedTo": owner})

    # ------------------------------------------------------------------
    # Researchers
    # ------------------------------------------------------------------

    @app.get("/api/researchers")
    async def api_get_researchers(owner: str = "", repo: str = "", prNumber: int = 0):
        ref = _parse_ref({"owner": owner, "repo": repo, "prNumber": prNumber}, "prNumber")
        return JSONResponse(service.researchers(ref).model_dump(mode="json"))

    @app.post("/api/researchers")
    async def api_save_researchers(request: Request):
        body = await _json_object(request)
        ref = _parse_ref(body, "prNumber")
        try:
            researchers = ResearchersConfig(researchers=body.get("researchers") or [], lsr=body.get("lsr"))
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        service.save_researchers(ref, researchers)
        return JSONResponse({"success": True})

    # ------------------------------------------------------------------
    # Pull request configuration
    # ------------------------------------------------------------------

    @app.get("/api/prs")
    async def api_list_prs():
        return JSONResponse({"repositories": [r.model_dump(mode="json") for r in service.repositories()]})

    @app.post("/api/prs")
    async def api_add_pr(request: Request):
        ref = _parse_ref(await _json_object(request))
        try:
            repositories = service.add_repository(ref)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JSONResponse({"success": True, "repositories": [r.model_dump(mode="json") for r in repositories]})

    @app.put("/api/prs/update-all")
    async def api_update_all_prs(request: Request):
        body = await _json_object(request)
        raw = body.get("repositories")
        if not isinstance(raw, list):
            raise HTTPException(status_code=400, detail="Invalid repositories data")
        try:
            repositories = [PullRequestRef.model_validate(r) for r in raw]
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        service.replace_repositories(repositories)
        return JSONResponse({"success": True})

    @app.delete("/api/prs/{index}")
    async def api_remove_pr(index: int):
        try:
            repositories = service.remove_repository(index)
        except NotConfiguredError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JSONResponse({"success": True, "repositories": [r.model_dump(mode="json") for r in repositories]})

    @app.post("/api/update-pr")
    async def api_update_pr(request: Request):
        service.set_single_repository(_parse_ref(await _json_object(request)))
        return JSONResponse({"success": True})

    return app

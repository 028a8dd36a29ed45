from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from backend.app.auth import AuthContext, get_auth_context
from backend.app.models import (
    DuplicateCheckResponse,
    FamilyNode,
    PersonClearResponse,
    PersonCreateRequest,
    PersonCreateResponse,
    PersonRecord,
    PersonUpdateRequest,
    SuggestedAction,
)
from backend.app.observability import MetricsRegistry, configure_logging, observe_request
from backend.app.persistence import SqlitePersistence, StoreUnavailableError
from backend.app.services.dedupe import describe_match, percent
from backend.app.settings import Settings, load_settings
from backend.app.store import (
    AuthRequiredError,
    DuplicateBlockedError,
    DuplicateNeedsReviewError,
    InMemoryStore,
    InvalidInputError,
    StoreNotFoundError,
)

logger = logging.getLogger("family_tree.api")


def create_app() -> FastAPI:
    app = FastAPI(title="Family Tree API", version="0.1.0")
    configure_logging()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    settings = load_settings()
    persistence = SqlitePersistence(settings.database_url) if settings.persistence_enabled else None
    app.state.store = InMemoryStore(persistence=persistence, policy=settings.duplicate_policy())
    app.state.settings = settings
    app.state.metrics = MetricsRegistry()

    @app.middleware("http")
    async def observability_middleware(request: Request, call_next):
        return await observe_request(request, call_next, metrics=app.state.metrics)

    app.include_router(build_router())
    return app


def get_store(request: Request) -> InMemoryStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_metrics(request: Request) -> MetricsRegistry:
    return request.app.state.metrics


def store_error_to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, AuthRequiredError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    if isinstance(exc, StoreNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, DuplicateBlockedError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "duplicate_blocked",
                "message": exc.message,
                "match_id": exc.match.person.id,
                "match_name": exc.match.person.name,
                "confidence_percent": percent(exc.match.confidence),
            },
        )
    if isinstance(exc, DuplicateNeedsReviewError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": "duplicate_needs_review",
                "message": str(exc),
                "result": exc.result.model_dump(mode="json"),
            },
        )
    logger.error("store_unavailable error=%s", exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def build_router() -> APIRouter:
    router = APIRouter()
    store_errors = (
        AuthRequiredError,
        StoreNotFoundError,
        InvalidInputError,
        DuplicateBlockedError,
        DuplicateNeedsReviewError,
        StoreUnavailableError,
    )

    @router.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @router.get("/health/ready")
    def readiness(request: Request) -> dict[str, str]:
        settings = get_settings(request)
        persistence = getattr(request.app.state.store, "persistence", None)
        if settings.persistence_enabled and persistence and not persistence.ping():
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="database unavailable",
            )
        return {"status": "ready"}

    @router.get("/metrics", response_class=PlainTextResponse)
    def metrics(request: Request) -> Response:
        registry = get_metrics(request)
        return PlainTextResponse(registry.to_prometheus())

    @router.get("/people", response_model=list[PersonRecord])
    def list_people(
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ) -> list[PersonRecord]:
        return get_store(request).list_people()

    @router.get("/tree", response_model=list[FamilyNode])
    def family_tree(
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ) -> list[FamilyNode]:
        return get_store(request).family_tree()

    @router.post("/people/duplicates/check", response_model=DuplicateCheckResponse)
    def check_duplicates(
        payload: PersonCreateRequest,
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ) -> DuplicateCheckResponse:
        result = get_store(request).preview_duplicates(payload)
        get_metrics(request).record_duplicate_decision(
            result.suggested_action, source="preview"
        )
        return DuplicateCheckResponse(
            **result.model_dump(),
            descriptions=[describe_match(match) for match in result.matches],
        )

    @router.post("/people", response_model=PersonCreateResponse)
    def add_person(
        payload: PersonCreateRequest,
        request: Request,
        context: AuthContext = Depends(get_auth_context),
    ) -> PersonCreateResponse:
        store = get_store(request)
        registry = get_metrics(request)
        try:
            person = store.add_person_checked(payload, actor=context)
        except DuplicateBlockedError as exc:
            registry.record_duplicate_decision(SuggestedAction.block)
            raise store_error_to_http(exc) from exc
        except DuplicateNeedsReviewError as exc:
            registry.record_duplicate_decision(exc.result.suggested_action)
            raise store_error_to_http(exc) from exc
        except store_errors as exc:
            raise store_error_to_http(exc) from exc
        registry.record_duplicate_decision(SuggestedAction.proceed)
        return PersonCreateResponse(
            person_id=person.id,
            father_id=person.father_id,
            overridden=False,
        )

    @router.post("/people/override", response_model=PersonCreateResponse)
    def add_person_override(
        payload: PersonCreateRequest,
        request: Request,
        context: AuthContext = Depends(get_auth_context),
    ) -> PersonCreateResponse:
        try:
            person = get_store(request).add_person_with_override(payload, actor=context)
        except store_errors as exc:
            raise store_error_to_http(exc) from exc
        return PersonCreateResponse(
            person_id=person.id,
            father_id=person.father_id,
            overridden=True,
        )

    @router.get("/people/{person_id}", response_model=PersonRecord)
    def get_person(
        person_id: str,
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ) -> PersonRecord:
        try:
            return get_store(request).get_person(person_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @router.get("/people/{person_id}/children", response_model=list[PersonRecord])
    def get_children(
        person_id: str,
        request: Request,
        _: AuthContext = Depends(get_auth_context),
    ) -> list[PersonRecord]:
        try:
            return get_store(request).get_children(person_id)
        except StoreNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @router.patch("/people/{person_id}", response_model=PersonRecord)
    def update_person(
        person_id: str,
        payload: PersonUpdateRequest,
        request: Request,
        context: AuthContext = Depends(get_auth_context),
    ) -> PersonRecord:
        try:
            return get_store(request).update_person(person_id, payload, actor=context)
        except store_errors as exc:
            raise store_error_to_http(exc) from exc

    @router.delete("/people/{person_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_person(
        person_id: str,
        request: Request,
        context: AuthContext = Depends(get_auth_context),
    ) -> Response:
        try:
            get_store(request).delete_person(person_id, actor=context)
        except store_errors as exc:
            raise store_error_to_http(exc) from exc
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.delete("/people", response_model=PersonClearResponse)
    def clear_people(
        request: Request,
        context: AuthContext = Depends(get_auth_context),
    ) -> PersonClearResponse:
        try:
            deleted = get_store(request).clear_all(actor=context)
        except store_errors as exc:
            raise store_error_to_http(exc) from exc
        return PersonClearResponse(deleted=deleted)

    return router


app = create_app()

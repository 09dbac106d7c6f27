from fastapi import APIRouter, Request

from ledger.readiness import check_required_tables

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/readiness")
def readiness(request: Request):
    """Readiness probe that validates the ledger tables exist."""
    services = request.app.state.services
    result = check_required_tables(services.engine)
    return {
        "status": "ready" if result.ready else "not_ready",
        "checks": {
            "cache_backend": services.cache.backend,
            "ledger_tables": {
                "required": result.checked_tables,
                "missing": result.missing_tables,
                "missing_optional": result.missing_optional_tables,
            },
        },
    }

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ratedesk.jobs.refresh import RefreshOrchestrator
from ratedesk.schemas.indicator import (
    INDICATORS,
    RATE_FX,
    REPO_RATES,
    TERM_DEPOSIT_RATES,
    WALLET_YIELDS,
    IndicatorSnapshot,
)

router = APIRouter()

LEGACY_ROUTES = {
    "/dolar": RATE_FX,
    "/billeteras": WALLET_YIELDS,
    "/cauciones": REPO_RATES,
    "/plazosfijos": TERM_DEPOSIT_RATES,
}


def get_orchestrator(request: Request) -> RefreshOrchestrator:
    return request.app.state.orchestrator


def _render(snapshot: IndicatorSnapshot) -> dict:
    return snapshot.model_dump(mode="json", by_alias=True)


@router.get("/")
async def summary_endpoint(
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> dict:
    snapshots = orchestrator.get_all_snapshots()
    return {
        "meta": {"route": "/"},
        "data": {name: _render(snapshot) for name, snapshot in snapshots.items()},
    }


@router.get("/indicators/{indicator}")
async def indicator_endpoint(
    indicator: str,
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> dict:
    if indicator not in INDICATORS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Unknown indicator '{indicator}'.", "indicators": list(INDICATORS)},
        )
    return {
        "meta": {"route": f"/indicators/{indicator}"},
        "data": _render(orchestrator.get_snapshot(indicator)),
    }


def _legacy_endpoint(route: str, indicator: str):
    async def endpoint(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)) -> dict:
        return {"meta": {"route": route}, "data": _render(orchestrator.get_snapshot(indicator))}

    endpoint.__name__ = f"legacy_{indicator.replace('-', '_')}_endpoint"
    return endpoint


for _route, _indicator in LEGACY_ROUTES.items():
    router.add_api_route(_route, _legacy_endpoint(_route, _indicator), methods=["GET"])


@router.api_route("/admin/force-update", methods=["GET", "POST"])
async def force_update_endpoint(
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    report = await orchestrator.force_update()
    payload = report.model_dump(mode="json")
    if report.ok:
        return JSONResponse({"ok": True, "message": "Forced update completed", "report": payload})
    return JSONResponse(
        {
            "ok": False,
            "error": "; ".join(f"{name}: {message}" for name, message in report.errors.items()),
            "report": payload,
        },
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

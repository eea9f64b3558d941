from __future__ import annotations

from fastapi import APIRouter, Depends

from insomnia_fuel.core.metrics import request_metrics
from insomnia_fuel.deps import require_admin
from insomnia_fuel.services.identity import Principal

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def metrics(_admin: Principal = Depends(require_admin)):
    return {"endpoints": request_metrics.snapshot(), "counters": request_metrics.counters()}

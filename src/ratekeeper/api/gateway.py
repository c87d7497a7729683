from fastapi import APIRouter, Depends, Request

from ratekeeper.core.rate import LimitContext
from ratekeeper.deps.rate_limit import enforce_rate_limit

router = APIRouter(tags=["gateway"])


@router.get("/protected")
async def protected(request: Request, limit: LimitContext = Depends(enforce_rate_limit)):
    return {
        "ok": True,
        "client_id": getattr(request.state, "client_id", None),
        "remaining": limit.remaining,
        "reset_epoch": limit.reset_epoch,
    }

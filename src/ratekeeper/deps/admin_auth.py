import hmac
import logging

from fastapi import Header, HTTPException, Request, status

from ratekeeper.config import settings

logger = logging.getLogger(__name__)


async def require_admin(
    request: Request,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    if x_admin_token and hmac.compare_digest(
        x_admin_token.encode("utf-8"), settings.admin_token.encode("utf-8")
    ):
        return

    client_ip = request.client.host if request.client else None
    logger.info("admin_token_rejected", extra={"client_ip": client_ip})
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

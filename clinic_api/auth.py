import hmac
import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import STAFF_API_TOKEN

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_staff(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Verify the front desk bearer token.
    Identity is issued upstream; this service only checks the shared staff token.
    """
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")

    if not hmac.compare_digest(token.encode(), STAFF_API_TOKEN.encode()):
        logger.warning("❌ Rejected request with invalid staff token")
        raise HTTPException(status_code=401, detail="Invalid token")

    return "staff"

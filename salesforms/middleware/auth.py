"""Authentication middleware and dependencies"""
from fastapi import HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional, Dict
from salesforms.config import get_settings
import httpx
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[Dict]:
    """
    Verify Supabase JWT token via Supabase Auth API
    """
    if not credentials:
        return None

    settings = get_settings()
    token = credentials.credentials

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{settings.supabase_url}/auth/v1/user",
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": settings.supabase_anon_key
                }
            )
    except httpx.RequestError as e:
        logger.error(f"Auth service unreachable: {e}")
        raise HTTPException(status_code=401, detail="Authentication service unavailable")

    if response.status_code != 200:
        logger.warning(f"Supabase auth failed: {response.status_code}")
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    try:
        user_data = response.json()
        user_id = user_data.get("id")
        auth_data = {
            "user_id": user_id,
            "role": user_data.get("role"),
            "email": user_data.get("email"),
            "raw_token": token
        }
    except Exception as e:
        logger.warning(f"Unreadable Supabase auth response: {e}")
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    return auth_data


async def get_current_user(
    auth_data: Optional[Dict] = Depends(verify_token)
) -> Dict:
    """
    Get current authenticated user

    Args:
        auth_data: Authentication data from verify_token

    Returns:
        User auth data; `user_id` is the owner of every form the request touches

    Raises:
        HTTPException: If not authenticated
    """
    if not auth_data:
        raise HTTPException(status_code=401, detail="Not authorized to access this route")

    return auth_data

# src/api/dependencies/auth.py
from typing import Optional
from fastapi import Security, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from src.config.settings import settings

security = HTTPBearer(auto_error=False)

def verify_token(credentials: Optional[HTTPAuthorizationCredentials] = Security(security)) -> bool:
    """Verify the API token when bearer tokens are configured."""
    tokens = settings.bearer_tokens_list
    if not tokens:
        return True
    if credentials is None or credentials.credentials not in tokens:
        raise HTTPException(
            status_code=401,
            detail="Invalid API token"
        )
    return True

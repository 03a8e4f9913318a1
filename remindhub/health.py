"""
Health check endpoints
Used by the hosting platform + ops

/health/db also reports whether the inbox can reach Qontak at all
(a bearer token is stored), without calling the provider.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from remindhub.db import get_db, ping
from remindhub.services.settings_store import get_qontak_token

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check():
    return {"status": "healthy"}


@router.get("/db")
def db_health_check(db: Session = Depends(get_db)):
    try:
        ping(db)
        token = get_qontak_token(db)
    except Exception as e:
        return {"database": "unhealthy", "error": str(e)}

    return {
        "database": "healthy",
        "qontak_token": "configured" if token else "missing",
    }

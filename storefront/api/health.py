"""
Health check endpoint
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from storefront.database import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Health check endpoint

    Returns service health status including:
    - Service status
    - Database connectivity
    - Timestamp
    """
    settings = request.app.state.settings

    # Check database connection
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "service": settings.SERVICE_NAME,
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "database": db_status,
        "payment_gateway": "configured" if settings.RAZORPAY_KEY_ID else "not configured",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/")
def root(request: Request):
    """Root endpoint"""
    return {
        "service": request.app.state.settings.SERVICE_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }

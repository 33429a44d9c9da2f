# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1 import battery, usage, users, models

# Create the main router
api_router = APIRouter()

# Include all the sub-routers
api_router.include_router(battery.router, prefix="/battery", tags=["battery"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
api_router.include_router(users.router, prefix="/user", tags=["user"])
api_router.include_router(models.router, prefix="/models", tags=["models"])

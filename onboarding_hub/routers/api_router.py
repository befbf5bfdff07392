from fastapi import APIRouter
from onboarding_hub.routers import onboarding

# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(onboarding.router, tags=["Onboarding"])

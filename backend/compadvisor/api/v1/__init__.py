from fastapi import APIRouter

from compadvisor.api.v1 import actions, analysis, employees

api_router = APIRouter()
api_router.include_router(analysis.router, tags=["analysis"])
api_router.include_router(actions.router, tags=["actions"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])

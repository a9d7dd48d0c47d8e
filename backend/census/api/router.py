from fastapi import APIRouter

from census.api.export import router as export_router
from census.api.families import router as families_router
from census.api.forms import router as forms_router

api_router = APIRouter()
api_router.include_router(export_router)
api_router.include_router(families_router)
api_router.include_router(forms_router)

from fastapi.routing import APIRouter

from flag_engine.web.api import monitoring
from flag_engine.web.api.flags import views as flags_views

api_router = APIRouter()
api_router.include_router(monitoring.router)
api_router.include_router(flags_views.router)

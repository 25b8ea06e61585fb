from fastapi import APIRouter
from app.api.v1.routes.auth import router as auth_router
from app.api.v1.routes.cancellations import router as cancellations_router
from app.api.v1.routes.ops import router as ops_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth_router)
api_router.include_router(cancellations_router)
api_router.include_router(ops_router)

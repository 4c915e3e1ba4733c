from fastapi import APIRouter

from domainrouter.api.v1.endpoints import directory, domains, public

api_router = APIRouter()
api_router.include_router(domains.router, prefix="/domains", tags=["domains"])
api_router.include_router(public.router, prefix="/public", tags=["public"])
api_router.include_router(directory.router, prefix="/directory", tags=["directory"])

from fastapi import APIRouter

from equipsearch.api.v1.email import router as email_router
from equipsearch.api.v1.industries import router as industries_router
from equipsearch.api.v1.machines import router as machines_router

v1_router = APIRouter()

v1_router.include_router(machines_router)
v1_router.include_router(industries_router)
v1_router.include_router(email_router)

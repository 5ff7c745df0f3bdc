# app/modules/router.py
from fastapi import APIRouter
from app.modules.smartreplies.api.router import v1 as smart_replies_router

router = APIRouter()
router.include_router(smart_replies_router)

from fastapi import APIRouter
from feeddiff.api.endpoints import compare, keylog

router = APIRouter()

router.include_router(keylog.router, prefix="/keylog", tags=["keylog"])
router.include_router(compare.router, tags=["compare"])

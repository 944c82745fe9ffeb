from fastapi import APIRouter

from feedback_platform.config import get_settings

router = APIRouter()


@router.get("/health")
def health():
    settings = get_settings()
    return {"ok": True, "mode": "mock" if settings.use_mock_data else "live"}

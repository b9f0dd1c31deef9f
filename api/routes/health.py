from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    return {
        "status": "ok",
        "catalog": getattr(request.app.state, "catalog", None) is not None,
    }

from fastapi import APIRouter
from familybudget.routes import categories, notifications, recurring, transactions

api_router = APIRouter()

api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(recurring.router, prefix="/recurring", tags=["recurring"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])


@api_router.get("/health")
def health():
    return {"status": "ok", "message": "Family Budget API"}

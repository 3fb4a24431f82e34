from fastapi import APIRouter

from app.api.routes import (
    accounts,
    activity,
    attachments,
    categories,
    fixed_costs,
    funds,
    health,
    projects,
    reports,
    transactions,
    transfers,
)


api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(projects.router)
api_router.include_router(accounts.router)
api_router.include_router(transactions.router)
api_router.include_router(transfers.router)
api_router.include_router(reports.router)
api_router.include_router(funds.router)
api_router.include_router(categories.router)
api_router.include_router(fixed_costs.router)
api_router.include_router(activity.router)
api_router.include_router(attachments.router)

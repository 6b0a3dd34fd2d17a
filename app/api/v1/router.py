"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import admin, payment_accounts, webhooks, withdrawals

api_router = APIRouter()

# Withdrawals
api_router.include_router(withdrawals.router, prefix="/withdrawals", tags=["Withdrawals"])

# Payment accounts
api_router.include_router(
    payment_accounts.router, prefix="/payment-accounts", tags=["Payment Accounts"]
)

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Provider webhooks, mounted at the application root
webhook_router = APIRouter()
webhook_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

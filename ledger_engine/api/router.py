from fastapi import APIRouter

from ledger_engine.api.routes import bank_accounts, fund_transfers, health, payments

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(payments.outward_router)
api_router.include_router(payments.inward_router)
api_router.include_router(fund_transfers.router)
api_router.include_router(bank_accounts.router)

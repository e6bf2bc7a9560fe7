from fastapi import APIRouter

from leave_ledger.api.balances import person_balance_router, person_ledger_router
from leave_ledger.api.grants import grants_router
from leave_ledger.api.persons import persons_router
from leave_ledger.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(persons_router)
api_router.include_router(grants_router)
api_router.include_router(person_balance_router)
api_router.include_router(person_ledger_router)
api_router.include_router(requests_router)

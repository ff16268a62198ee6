# discount_service/api/v1/api.py

from fastapi import APIRouter
from discount_service.api.v1.endpoints import checkout, discounts

api_router = APIRouter()

api_router.include_router(discounts.router)
api_router.include_router(checkout.router)

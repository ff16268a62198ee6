# discount_service/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from discount_service.api.v1.api import api_router
from discount_service.core.config import settings
from discount_service.core.exceptions import DiscountServiceError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Discount service starting up (env=%s)", settings.ENV)
    yield
    logger.info("Discount service shutting down")


app = FastAPI(
    title="Discount Service",
    version="1.0.0",
    description="""
        Sales, vouchers and voucher codes for multi-tenant stores.

        ## Features

        * **Discounts**: Create, update, duplicate and toggle sales and vouchers
        * **Voucher Codes**: Add codes by hand or generate unique batches
        * **Checkout**: Validate codes against an order and record redemptions
        * **Multi-tenant**: Every request is scoped to the token's tenant
        """,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DiscountServiceError)
async def discount_service_error_handler(request: Request, exc: DiscountServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Discount service is running"}

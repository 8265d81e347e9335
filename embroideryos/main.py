"""EmbroideryOS - 刺繡廠後台 API"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from embroideryos.config import settings
from embroideryos.database import init_db
from embroideryos.routers import (
    businesses,
    staff,
    production_configs,
    staff_records,
    staff_payments,
    customers,
    customer_payments,
    orders,
    invoices,
    suppliers,
    supplier_payments,
    expenses,
    expense_items,
    crp,
    rules,
    dashboard,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # SQLite + debug 時補建缺表；正式環境由 Alembic 管理
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    description="EmbroideryOS back-office",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(businesses.router)
app.include_router(staff.router)
app.include_router(production_configs.router)
app.include_router(staff_records.router)
app.include_router(staff_payments.router)
app.include_router(customers.router)
app.include_router(customer_payments.router)
app.include_router(orders.router)
app.include_router(invoices.router)
app.include_router(suppliers.router)
app.include_router(supplier_payments.router)
app.include_router(expenses.router)
app.include_router(expense_items.router)
app.include_router(crp.router)
app.include_router(rules.router)
app.include_router(dashboard.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    # 錯誤細節只寫入 log，不回給前端
    return JSONResponse(status_code=500, content={"detail": "伺服器內部錯誤"})


@app.get("/")
def home():
    return {"message": "EmbroideryOS 運行中"}

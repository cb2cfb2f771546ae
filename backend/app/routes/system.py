# backend/app/routes/system.py
"""
System health endpoint.

Reports database reachability plus a quick stock sanity check: any product
row with negative stock means the ledger was bypassed.
"""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, Sale

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    started = time.perf_counter()
    try:
        product_count = db.session.query(Product).count()
        sale_count = db.session.query(Sale).count()
        negative_stock = db.session.query(Product).filter(Product.stock_level < 0).count()
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "error": "Database error",
        }

    return {
        "status": "healthy" if negative_stock == 0 else "degraded",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "details": {
            "products": product_count,
            "sales": sale_count,
            "products_with_negative_stock": negative_stock,
        },
    }


@system_bp.get("/health")
def health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return {"status": database["status"], "checks": {"database": database}}, status_code

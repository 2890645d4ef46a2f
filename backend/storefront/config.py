# backend/storefront/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Read cache: "redis" for shared deployments, "memory" for a single dev process
    CACHE_BACKEND = os.environ.get("CACHE_BACKEND", "redis" if os.environ.get("REDIS_URL") else "memory")
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT = float(os.environ.get("REDIS_SOCKET_TIMEOUT", "2"))

    # TTLs in seconds per resource family
    CACHE_TTL_PRODUCTS = int(os.environ.get("CACHE_TTL_PRODUCTS", "60"))
    CACHE_TTL_CATEGORIES = int(os.environ.get("CACHE_TTL_CATEGORIES", "3600"))
    CACHE_TTL_SEARCH = int(os.environ.get("CACHE_TTL_SEARCH", "60"))
    CACHE_TTL_DASHBOARD = int(os.environ.get("CACHE_TTL_DASHBOARD", "60"))

    # Payment gateway
    PAYMENT_GATEWAY_ENV = os.environ.get("PAYMENT_GATEWAY_ENV", "sandbox")
    PAYMENT_MERCHANT_ID = os.environ.get("PAYMENT_MERCHANT_ID", "")
    PAYMENT_CALLBACK_URL = os.environ.get("PAYMENT_CALLBACK_URL", "http://localhost:3000/payment/callback")
    PAYMENT_GATEWAY_TIMEOUT = float(os.environ.get("PAYMENT_GATEWAY_TIMEOUT", "10"))

    # Delivery
    WAREHOUSE_LATITUDE = float(os.environ.get("WAREHOUSE_LATITUDE", "35.6892"))
    WAREHOUSE_LONGITUDE = float(os.environ.get("WAREHOUSE_LONGITUDE", "51.3890"))

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = frozenset(
        o.strip() for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        ).split(",") if o.strip()
    )

    # bcrypt cost factor; tests lower it (bcrypt minimum is 4)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

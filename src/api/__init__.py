"""API module - route handlers and common dependencies."""

from fastapi import FastAPI

from src.api.deps import Counselor, CurrentUser, app_error_to_http

__all__ = [
    "Counselor",
    "CurrentUser",
    "app_error_to_http",
    "register_routers",
]


def register_routers(app: FastAPI) -> None:
    """Register all API routers to the application.

    Args:
        app: FastAPI application instance
    """
    # Booking & sessions
    from src.api.payment import router as payment_router
    from src.api.sessions import router as sessions_router

    app.include_router(payment_router, prefix="/api")
    app.include_router(sessions_router, prefix="/api")

    # Wallet, payout account & withdrawals
    from src.api.bank import router as bank_router
    from src.api.wallets import router as wallets_router

    app.include_router(wallets_router, prefix="/api")
    app.include_router(bank_router, prefix="/api")

    # Provider webhooks (no /api prefix, registered with the providers)
    from src.api.webhooks import router as webhooks_router

    app.include_router(webhooks_router)

"""
# `profiti/main.py`: Application entry point

- Creates the FastAPI app and configures logging from `settings.log_level`.
- CORS from `settings.allowed_origins` (comma-separated list or `*`).
- Routers: `/users`, `/products`, `/cart`, `/orders`, `/deliveries`, `/notifications`, `/geo`.
- `shutdown`: every open Firestore snapshot listener is closed.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from profiti.config import settings
from profiti.routers import carts, deliveries, geo, notifications, orders, products, users
from profiti.services.subscriptions import registry

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("profiti")

# Initialize FastAPI app
app = FastAPI(
    title="Profiti API",
    description="Marketplace backend for surplus food: carts, orders, delivery matching and pricing.",
    version="1.0.0",
    redirect_slashes=False,
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router)
app.include_router(products.router)
app.include_router(carts.router)
app.include_router(orders.router)
app.include_router(deliveries.router)
app.include_router(notifications.router)
app.include_router(geo.router)


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok"}


@app.on_event("shutdown")
async def _close_subscriptions():
    closed = registry.close_all()
    logger.info("Shutdown: %d listener(s) closed", closed)


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("profiti.main:app", host="0.0.0.0", port=8000, reload=True)

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from rental_engine.config import settings
from rental_engine.database import create_db_and_tables
from rental_engine.errors import RentalEngineError, rental_engine_error_handler
from rental_engine.routes import (
    audio,
    content,
    health,
    rentals,
    rentals_admin,
    subscriptions,
    terms,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.env == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="Rental & Subscription Access API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RentalEngineError, rental_engine_error_handler)

app.include_router(rentals.router, prefix="/rentals", tags=["Rentals"])
app.include_router(rentals_admin.router, prefix="/admin/rentals", tags=["Admin Rentals"])
app.include_router(audio.router, prefix="/audio", tags=["Audio Rentals"])
app.include_router(content.router, prefix="/content", tags=["Content Rental Info"])
app.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(terms.router, prefix="/terms", tags=["Terms"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {"message": "Rental & Subscription Access API"}

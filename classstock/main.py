import logging
import os

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classstock.api.database.database import SessionLocal
from classstock.api.routes import classes, stocks, students
from classstock.trading_engine.services.errors import PersistenceError
from classstock.trading_engine.services.repository import seed_default_stocks

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("classstock.main")

origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
if os.getenv("FRONTEND_BASE_URL"):
    origins.append(os.getenv("FRONTEND_BASE_URL"))

app = FastAPI(title="ClassStock")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(
        status_code=503,
        content={"reason": "persistence_error", "message": "Ledger store unavailable, retry later"},
    )


@app.get("/")
def read_root():
    return {"message": "ClassStock ledger API"}


# DATABASE ROUTES --------------------------------------------------------------------------------------
app.include_router(stocks.router)
app.include_router(classes.router)
app.include_router(students.router)


# DB Start up after deploying
@app.on_event("startup")
async def run_migrations():
    alembic_cfg = Config("alembic.ini")
    command.upgrade(alembic_cfg, "head")

    session = SessionLocal()
    try:
        seeded = seed_default_stocks(session)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    if seeded:
        logger.info("Seeded %s default stocks", seeded)

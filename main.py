from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from dotenv import load_dotenv

from db import SessionLocal, init_db
from core_sync.config import SYNC_JOB_TTL_SECONDS
from core_sync.logic.jobs import SyncJobStore
from core_sync.routes import router as sync_router

load_dotenv()

logging.basicConfig(level=logging.INFO)
logging.info("App starting with DATABASE_URL")


def create_app(session_factory=SessionLocal, job_store: SyncJobStore = None, create_tables: bool = True) -> FastAPI:
    app = FastAPI(title="Core Sync")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if create_tables:
        init_db(bind=session_factory.kw.get("bind"))

    app.state.session_factory = session_factory
    app.state.job_store = job_store or SyncJobStore(ttl_seconds=SYNC_JOB_TTL_SECONDS)

    app.include_router(sync_router)

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        return {"status": "ok"}

    return app


app = create_app()

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from quiz_engine.core.config import AUTO_CREATE_TABLES, LOG_LEVEL
from quiz_engine.core.database import init_db
from quiz_engine.core.errors import QuizEngineError
from quiz_engine.api.quizzes import router as quizzes_router
from quiz_engine.api.auth import router as auth_router
from quiz_engine.api.admin import router as admin_router
from quiz_engine.api.admin_status import router as status_router

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database tables ensured")
    yield

app = FastAPI(title="Staff Quiz Engine", version="1.0.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])
app.include_router(auth_router, prefix="/v1/auth", tags=["auth"])
app.include_router(quizzes_router, prefix="/v1/quizzes", tags=["quizzes"])
app.include_router(admin_router, prefix="/v1/admin", tags=["admin"])
app.include_router(status_router, prefix="/v1/admin", tags=["maintenance-jobs"])

@app.exception_handler(QuizEngineError)
async def engine_error_handler(request: Request, exc: QuizEngineError):
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

@app.get("/health")
def health(): return {"status": "ok"}

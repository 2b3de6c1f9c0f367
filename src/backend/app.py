import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import init_db
from routers import automation as automation_router
from routers import markets as markets_router
from routers import users as users_router

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Startup: creating tables if missing")
    await init_db()
    yield
    logger.info("Shutdown")


app = FastAPI(title="Matchday Markets", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router.router, prefix="/users", tags=["users"])
app.include_router(markets_router.router, prefix="/markets", tags=["markets"])
app.include_router(automation_router.router, prefix="/automation", tags=["automation"])


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True)

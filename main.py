from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from database import Base, engine, settings
from api import rooms, players, rounds
from core.exceptions import InvalidRequest
import models  # noqa: F401  註冊資料表到 Base.metadata

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 在應用啟動時建立資料庫表
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Investment Game API",
    description="Backend API for a 2-4 player public goods investment game",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_allow_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # 請求格式錯誤一律回 400 VALIDATION_ERROR，與 core 的驗證錯誤相同
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    error = InvalidRequest(message or "Invalid request")
    return JSONResponse(status_code=error.status_code, content={"detail": error.to_detail()})


# Include routers
app.include_router(rooms.router)
app.include_router(players.router)
app.include_router(rounds.router)


@app.get("/")
def root():
    return {"message": "Investment Game API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, settings
from api import rooms, players, race
from services.quote_service import QuoteSource
from services.race_runner import RaceRunner

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表、報價來源、race task 管理器
    Base.metadata.create_all(bind=engine)
    app.state.quote_source = QuoteSource()
    app.state.race_runner = RaceRunner()
    yield
    # Shutdown: 取消還在跑的 race task
    await app.state.race_runner.shutdown()


app = FastAPI(
    title="Crypto Race API",
    description="Backend API for the multiplayer crypto price prediction race",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(rooms.router)
app.include_router(players.router)
app.include_router(race.router)


@app.get("/")
def root():
    return {"message": "Crypto Race API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

from fastapi import FastAPI
import logging

from memory_game.api.routes import router
from memory_game.infra.kv import create_kv_store
from memory_game.infra.redis_client import get_max_engines, get_namespace
from memory_game.registry import close_registry, init_registry

app = FastAPI(title="memory-card-game", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    init_registry(kv=create_kv_store(), namespace=get_namespace(), max_engines=get_max_engines())


@app.on_event("shutdown")
async def _shutdown() -> None:
    close_registry()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "memory-card-game", "version": "0.1.0"}

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routers import router as api_router
from services import create_firestore_client, warn_if_unconfigured

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    warn_if_unconfigured()
    app.state.db = create_firestore_client()
    yield


app = FastAPI(title="Qikink → Firestore Sync", lifespan=lifespan)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(api_router)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "3000"))
    logger.info("Listening on port %d", port)
    uvicorn.run(app, host="0.0.0.0", port=port)

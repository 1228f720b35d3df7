import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from battletracker.database import init_db
from battletracker.errors import BattleTrackerError
from battletracker.routes import campaigns, matches, rounds

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Battle Tracker Rounds API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BattleTrackerError)
async def battle_tracker_error_handler(request: Request, exc: BattleTrackerError):
    logger.warning("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(campaigns.router, prefix="/api", tags=["campaigns"])
app.include_router(rounds.router, prefix="/api", tags=["rounds"])
app.include_router(matches.router, prefix="/api", tags=["matches"])


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/api/health")
def health_check():
    return {"app_name": "Battle Tracker Rounds API", "status": "healthy"}

import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from db.session import engine
from db.base import Base

from models.colors import ColorRecord  # noqa: F401
from models.import_sessions import ImportSessionMarker  # noqa: F401
from models.rules import RuleRecord  # noqa: F401

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="Color Grid API",
    version="1.0.0",
    swagger_ui_parameters={
        "displayRequestDuration": True,
    },
)

# --------------------------------------------------
# DB INIT
# --------------------------------------------------
@app.on_event("startup")
def _init_db():
    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError:
        logger.exception("DB init failed")

# --------------------------------------------------
# CORS
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# --------------------------------------------------
# CORS PREFLIGHT (EXPLICIT)
# --------------------------------------------------
@app.options("/{path:path}")
def preflight(path: str, request: Request):
    return Response(status_code=204)


# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
from routers.colors import router as colors_router
from routers.manual_color import router as manual_color_router
from routers.rules import router as rules_router
from routers.search import router as search_router
app.include_router(colors_router)
app.include_router(search_router)
app.include_router(manual_color_router)
app.include_router(rules_router)

# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/")
def root():
    return {"status": "ok", "service": "color-grid"}

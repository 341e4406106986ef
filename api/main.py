from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import db
from core.oplog import configure_logging
from quality import router as quality_router
from resources import router as resources_router
from resources.errors import AdminError
from submissions import router as submissions_router

configure_logging()


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

# Allow local admin frontend dev server to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AdminError, resources_router.admin_error_handler)

# Fixed-path routes first; the generic /admin/{type}/{id} routes go last.
app.include_router(resources_router.lookup_router, tags=["lookups"])
app.include_router(submissions_router.router, tags=["submissions"])
app.include_router(quality_router.router, tags=["quality"])
app.include_router(resources_router.router, tags=["resources"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "directory admin api"}

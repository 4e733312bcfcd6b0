import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from .config import ALLOWED_CORS_ORIGINS, LOG_LEVEL, PORT
from .database import engine
from .models import Base
from .routers import auth, chats, otp

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("admitbot")


app = FastAPI(title="StudentGuideAI – Gujarat college admissions assistant")

Base.metadata.create_all(bind=engine)  # create tables
app.include_router(auth.authRoutes)
app.include_router(otp.router)
app.include_router(chats.router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    # every error body carries a top-level "message"; relayed upstream errors add "error"
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Something went wrong!"})


@app.get("/")
def read_root() -> dict:
    return {"msg": "welcome to the college admissions assistant"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("admitbot.main:app", host="0.0.0.0", port=PORT)

from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from prscore.api.api_v1 import router as api_v1
from prscore.core.config import settings
from prscore.core.logging import setup_logging
from prscore.db.session import engine

load_dotenv()  # Load .env variables into os.environ (per-org GITHUB_TOKEN_* lookups)

setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Lifespan function for the FastAPI application.
    Disposes the database engine on shutdown.
    """
    yield
    await engine.dispose()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)


@app.get("/")
def root():
    return {"message": "Hello from PR Score!"}


app.include_router(api_v1)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

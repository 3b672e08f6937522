"""Main FastAPI application."""

from fastapi import FastAPI

from tinypenguin import __version__
from tinypenguin.api.endpoints import router

# Create FastAPI application
app = FastAPI(
    title="TinyPenguin",
    description=(
        "Runs natural-language system administration tasks against a local language model "
        "and streams the tool executions back."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Tasks",
            "description": "Run tasks and stream their progress as newline-delimited JSON events.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Include routers
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tinypenguin.main:app", host="127.0.0.1", port=50051, log_level="info")

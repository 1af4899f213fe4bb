import uvicorn

from knowhub.core.config import settings

if __name__ == "__main__":
    # Single worker: the query cache, feature caches and rate-limit
    # windows are in-process state.
    uvicorn.run(
        "knowhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info" if settings.environment == "development" else "warning",
        access_log=settings.environment == "development",
    )

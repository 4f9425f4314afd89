import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from incident_ai.core.config import settings
from incident_ai.routes import analysis, health

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    description="AI-assisted incident response log analysis backend",
    version="1.0.0"
)

# CORS Configuration - Allow all origins for the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health check is included at the root for easy access
app.include_router(health.router, tags=["health"])
app.include_router(analysis.router, prefix="/api", tags=["log-analysis"])


if __name__ == "__main__":
    import uvicorn
    # uvicorn incident_ai.main:app --reload --host 0.0.0.0 --port 8000
    uvicorn.run("incident_ai.main:app", host="0.0.0.0", port=settings.PORT, reload=settings.DEBUG)

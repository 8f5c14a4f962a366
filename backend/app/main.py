#backend/app/main.py

import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from backend.app.api.routes import api_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

class CoverLetterApp:
    def __init__(self):
        self.app = FastAPI(
            title="Cover Letter Generator API",
            description="Upload a CV and a job posting; a background worker produces a tailored cover letter PDF.",
            version="1.0.0"
        )
        self._configure_cors()
        self.include_routers()

    def _configure_cors(self):
        origins_env = os.getenv("BACKEND_CORS_ORIGINS", "*")
        origins = [o.strip() for o in origins_env.split(",") if o.strip()]
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=origins != ["*"],
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    def include_routers(self):
        self.app.include_router(api_router)

def get_app():
    """Entrypoint for ASGI"""
    return CoverLetterApp().app

# Run with 'uvicorn backend.app.main:get_app --factory'
app = get_app()

"""
FastAPI app for the class placement engine.

Thin HTTP layer over the application use cases. Persistence of the returned rosters
and notifications stay with the calling portal.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classplacement.api.router import router
from classplacement.application.config import CORS_ORIGINS, LOG_FORMAT

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

app = FastAPI(
    title="Class Placement API",
    description="Balanced class rosters from student attributes, parent requests and teacher surveys",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
def root():
    """Health check"""
    return {"message": "Class Placement API", "status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

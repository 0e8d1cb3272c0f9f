import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from transitops.config import settings
from transitops.database import Base, engine, SessionLocal
from transitops.dependencies import get_notifier
from transitops.logging_config import setup_json_logging
from transitops.routes import router as routes_router
from transitops.schedules import router as schedules_router
from transitops.schedules.sweeper import CompletionSweeper
from transitops.bookings import router as bookings_router

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Trip scheduling and booking availability API",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # Admin dashboard dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    routes_router,
    prefix=f"{settings.API_V1_STR}/routes",
    tags=["Routes"]
)

app.include_router(
    schedules_router,
    prefix=f"{settings.API_V1_STR}/schedules",
    tags=["Schedules"]
)

app.include_router(
    bookings_router,
    prefix=f"{settings.API_V1_STR}/bookings",
    tags=["Bookings"]
)

sweeper = None

@app.on_event("startup")
def on_startup():
    global sweeper
    setup_json_logging()
    Base.metadata.create_all(bind=engine)
    if settings.AUTO_COMPLETE_ENABLED:
        sweeper = CompletionSweeper(SessionLocal, notifier=get_notifier())
        sweeper.start()
    logger.info("%s started in %s", settings.PROJECT_NAME, settings.ENVIRONMENT)

@app.on_event("shutdown")
def on_shutdown():
    if sweeper is not None:
        sweeper.stop()

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": settings.PROJECT_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

# api/main.py
"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from HCM import __version__
from api.clocked_in import router as clocked_in_router
from api.time_entries import router as time_entries_router

# Create FastAPI application
app = FastAPI(
    title="HCM Workforce Sync API",
    description="""
Read-only REST API over the mirrored HCM workforce data.

## Features

### Time Entries
- List a tenant's time entries with date range, employee and approval filters
- Pagination support

### Clocked In
- Current clocked-in snapshot per tenant and business date
- Snapshot statistics for health checks
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(time_entries_router)
app.include_router(clocked_in_router)


@app.get("/health", tags=["Health"])
def health_check():
    """Service health and available endpoints."""
    return {
        "status": "healthy",
        "version": __version__,
        "endpoints": {
            "time_entries": "/tenants/{tenant_id}/time-entries",
            "clocked_in": "/tenants/{tenant_id}/clocked-in",
            "clocked_in_stats": "/tenants/{tenant_id}/clocked-in/stats",
            "docs": "/docs",
        }
    }

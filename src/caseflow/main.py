"""
Caseflow - Main Application
===========================

Case-management backend driven by configurable workflows.

Modules:
- Workflow: workflow definitions (states, transitions, requirements, actions)
- Matching: workflow, department and user resolution
- Records: records, the transition engine and post-transition actions
- SLA: due dates and the breach monitor
- Audit: the append-only revision log

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, notifier, webhooks, policy files
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from caseflow.config import settings
from caseflow.core import ApplicationException, SystemClock

# Infrastructure
from caseflow.infrastructure.database import close_database, create_tables, init_database
from caseflow.infrastructure.database.unit_of_work import uow_factory
from caseflow.matching.application import EmptyDirectory
from caseflow.matching.infrastructure import StaticDirectory
from caseflow.records.infrastructure import HttpxWebhookClient
from caseflow.shared.application import NullNotifier
from caseflow.shared.infrastructure.notifier import SlackNotifier

# SLA Module
from caseflow.sla.application import SLAMonitor
from caseflow.sla.infrastructure import SLAPolicyManager, SLAScheduler

# Module Routers
from caseflow.audit.interfaces import audit_router
from caseflow.records.interfaces import records_router
from caseflow.workflow.interfaces import workflow_router

# API plumbing and logging
from caseflow.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from caseflow.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load the SLA policy and watch it for changes
    4. Load the organization directory
    5. Build the notifier and webhook client
    6. Start the SLA monitor

    SHUTDOWN:
    1. Stop the SLA monitor
    2. Stop the policy watcher
    3. Close the notifier and webhook client
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Caseflow", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    database_ready = True
    try:
        await create_tables()
    except Exception as e:
        database_ready = False
        logger.warning(f"Database not available - running in degraded mode: {e}")

    clock = SystemClock()

    logger.info("Loading SLA policy")
    policy_manager = SLAPolicyManager()
    policy_manager.load(settings.sla_policy_path)
    policy_manager.start_watching()

    directory = StaticDirectory.from_yaml(settings.directory_path) if settings.directory_path else EmptyDirectory()

    if settings.slack_webhook_url:
        notifier = SlackNotifier(
            webhook_url=settings.slack_webhook_url,
            channel=settings.slack_channel,
            timeout_seconds=settings.slack_timeout_seconds,
        )
    else:
        logger.info("Slack webhook not configured - notifications are dropped")
        notifier = NullNotifier()

    webhook_client = HttpxWebhookClient(timeout_seconds=settings.webhook_timeout_seconds)

    sla_scheduler = None
    if settings.sla_monitor_enabled and database_ready:
        monitor = SLAMonitor(uow_factory(), policy_manager, notifier=notifier, clock=clock, directory=directory)
        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_scan_interval)
        await sla_scheduler.start(monitor.scan)

    # Store collaborators in app state for dependency injection
    app.state.settings = settings
    app.state.clock = clock
    app.state.policy_provider = policy_manager
    app.state.directory = directory
    app.state.notifier = notifier
    app.state.webhook_client = webhook_client
    app.state.sla_scheduler = sla_scheduler

    logger.info("Caseflow started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Caseflow")

    if sla_scheduler:
        await sla_scheduler.stop()
    policy_manager.stop_watching()
    await notifier.close()
    await webhook_client.close()
    await close_database()

    logger.info("Caseflow shutdown complete")


app = FastAPI(
    title="Caseflow API",
    description="""
    ## Workflow-driven case management

    Records (incidents, requests, complaints, queries) move through
    administrator-defined workflows. Each transition may require fields,
    comments, attachments or feedback, and may trigger assignment,
    notification, SLA and webhook actions.

    ### Modules
    - `/workflows` - workflow definitions, validation, import/export, matching
    - `/records` - records, comments, attachments, transitions, history
    - `/revisions` - the audit trail and its retention purge

    Callers identify themselves with `X-Actor-ID` and `X-Actor-Roles`.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(workflow_router)
app.include_router(records_router)
app.include_router(audit_router)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(request.app.state, "sla_scheduler", None)
    notifier = getattr(request.app.state, "notifier", None)
    checks = {
        "sla_policy": "loaded" if getattr(request.app.state, "policy_provider", None) else "missing",
        "sla_monitor": "running" if scheduler and scheduler.is_running else "stopped",
        "notifier": "slack" if isinstance(notifier, SlackNotifier) else "disabled",
    }
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "workflows": {"prefix": "/workflows"},
            "records": {"prefix": "/records"},
            "audit": {"prefix": "/revisions"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "caseflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )

"""
Trade Lifecycle REST API

FastAPI interface for the monitor: state queries, operator commands and
manual job triggers. Instances are installed with ``init_api``; until then
every route returns 503.
"""

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
import logging

from statarb.lifecycle.commands import CommandHandler, CommandResult
from statarb.lifecycle.schemas import pair_symbol, utcnow

LOG = logging.getLogger(__name__)


# ========================================
# REQUEST SCHEMAS
# ========================================

class OpenPositionRequest(BaseModel):
    """Forced entry"""
    pair: str = Field(..., description="Pair symbol (e.g., BTC/ETH)")
    direction: Optional[str] = Field(None, pattern="^(long|short)$", description="First-leg direction")
    size: float = Field(1.0, gt=0.0, description="Position size multiplier")


class BlacklistRequest(BaseModel):
    """Blacklist an asset"""
    asset: str = Field(..., min_length=1)
    reason: str = ""


# ========================================
# API INITIALIZATION
# ========================================

app = FastAPI(
    title="StatArb Trade Monitor API",
    description="Pairs trading lifecycle: watchlist, positions, history and jobs",
    version="1.0.0",
)

# Global instances
commands: Optional[CommandHandler] = None
scheduler = None


def init_api(command_handler: CommandHandler, job_scheduler=None) -> FastAPI:
    """Install the command handler and (optionally) the job scheduler"""
    global commands, scheduler
    commands = command_handler
    scheduler = job_scheduler
    LOG.info("✓ Trade monitor API initialized")
    return app


def get_commands() -> CommandHandler:
    if commands is None:
        raise HTTPException(status_code=503, detail="Trade monitor not initialized")
    return commands


def get_scheduler():
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler


ERROR_STATUS = {
    'UpstreamUnavailable': 503,
    'InsufficientData': 503,
    'ValueError': 422,
    'InvalidFitness': 422,
}


def _unwrap(result: CommandResult, status_code: int = 400) -> dict:
    """Command result as a response body; failures raise with the mapped status"""
    if not result.ok:
        status_code = ERROR_STATUS.get(result.data.get('error'), status_code)
        raise HTTPException(status_code=status_code, detail=result.to_dict())
    return result.to_dict()


# ========================================
# ENDPOINTS
# ========================================

@app.get("/health")
async def get_health():
    """Liveness and initialization state"""
    get_commands()
    return {
        'status': 'ok',
        'scheduler': scheduler is not None,
        'timestamp': utcnow().isoformat(),
    }


@app.get("/status")
def get_status():
    """Capacity, last cycle, history stats and scheduler state"""
    data = _unwrap(get_commands().status(), status_code=503)
    if scheduler is not None:
        data['data']['jobs'] = scheduler.status()
    return data


@app.get("/watchlist")
def get_watchlist():
    return _unwrap(get_commands().watchlist(), status_code=503)


@app.get("/positions")
def get_positions():
    return _unwrap(get_commands().trades(), status_code=503)


@app.get("/history")
def get_history(limit: int = 10):
    """Closed trades, most recent first"""
    return _unwrap(get_commands().history(limit), status_code=503)


@app.post("/positions")
def open_position(request: OpenPositionRequest):
    """
    Force an entry.

    Admission control still applies; statistical entry checks do not.
    Rejections return 409 with the conflict reason.
    """
    result = get_commands().open(request.pair, request.direction, request.size)
    return _unwrap(result, status_code=409)


@app.delete("/positions/{base}/{quote}")
def close_position(base: str, quote: str):
    """Manual exit"""
    return _unwrap(get_commands().close(pair_symbol(base, quote)), status_code=409)


@app.post("/positions/{base}/{quote}/partial")
def partial_exit(base: str, quote: str):
    """Forced partial exit"""
    return _unwrap(get_commands().partial(pair_symbol(base, quote)), status_code=409)


@app.post("/blacklist")
def add_blacklist(request: BlacklistRequest):
    return _unwrap(get_commands().blacklist(request.asset, request.reason))


@app.post("/jobs/monitor")
def trigger_monitor():
    """Run a monitor cycle now (skipped if one is running)"""
    get_commands()
    return get_scheduler().run_monitor()


@app.post("/jobs/scan")
def trigger_scan():
    """Run a discovery scan now (skipped if one is running)"""
    get_commands()
    return get_scheduler().run_scan()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduled jobs on shutdown"""
    LOG.info("Trade monitor API shutting down...")
    if scheduler is not None:
        scheduler.stop()

"""
Start Trade Monitor API Server

Wires market data, storage, fitness engine, scanner, monitor and scheduler,
then serves the REST API on port 8010. Settings come from the environment
(.env supported).
"""

import logging
import os

from dotenv import load_dotenv
import uvicorn

load_dotenv()

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from statarb.bootstrap import build_components
from statarb.lifecycle.api import app, init_api

LOG = logging.getLogger(__name__)


def build_app(start_scheduler: bool = True):
    """Construct every collaborator and install them in the API"""
    components = build_components()
    init_api(components.commands, components.scheduler)
    if start_scheduler:
        components.scheduler.start()
    return app


if __name__ == "__main__":
    port = int(os.environ.get('API_PORT', 8010))

    print("=" * 60)
    print("  StatArb - Pairs Trade Monitor API")
    print("=" * 60)
    print()
    print(f"Starting server on http://0.0.0.0:{port}")
    print()
    print("Available endpoints:")
    print("  GET    /status                         - Capacity and last cycle")
    print("  GET    /watchlist                      - Watchlist pairs")
    print("  GET    /positions                      - Open positions")
    print("  GET    /history                        - Closed trades")
    print("  POST   /positions                      - Force entry")
    print("  DELETE /positions/{base}/{quote}       - Manual exit")
    print("  POST   /positions/{base}/{quote}/partial - Forced partial exit")
    print("  POST   /blacklist                      - Blacklist asset")
    print("  POST   /jobs/monitor                   - Run monitor now")
    print("  POST   /jobs/scan                      - Run scan now")
    print()
    print(f"API Documentation: http://localhost:{port}/docs")
    print("=" * 60)

    uvicorn.run(
        build_app(),
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info"
    )

"""
Movement Yield - DeFi aggregation & routing API
FastAPI backend: protocol snapshot, APY provenance, deposits and zaps
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from api.defi_router import router as defi_router
from api.protocol_router import router as protocol_router
from infrastructure.api_metrics import api_metrics
from integrations.tx_submitter import SimulatedSubmitter, UnconfiguredSubmitter, get_submitter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("Main")

app = FastAPI(
    title="Movement Yield API",
    description="Aggregated Movement DeFi data, APY estimates and protocol routing",
    version="1.0.0"
)

app.include_router(defi_router)
app.include_router(protocol_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)


# ============================================
# ENDPOINTS
# ============================================

@app.get("/health")
async def health():
    """Process health plus the state of upstreams that recently failed"""
    unhealthy = api_metrics.get_unhealthy_services()
    submitter = get_submitter()
    return {
        "status": "degraded" if unhealthy else "ok",
        "network": settings.NETWORK_NAME,
        "rpc_url": settings.MOVEMENT_RPC_URL,
        "simulation_mode": isinstance(submitter, SimulatedSubmitter),
        "writes_enabled": not isinstance(submitter, UnconfiguredSubmitter),
        "upstreams": unhealthy,
    }


@app.get("/api/metrics")
async def get_api_metrics():
    """Outbound call stats per upstream service"""
    stats = api_metrics.get_all_stats()
    stats["recent_errors"] = api_metrics.get_recent_errors(limit=10)
    return stats


# ============================================
# RUN
# ============================================

if __name__ == "__main__":
    import uvicorn
    logger.info(f"🚀 Starting on port {settings.PORT} (simulation={settings.SIMULATION_MODE})")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)

"""
Pricing Campaign Service Routes Registry

Defines service metadata and the routes the service exposes.
"""

SERVICE_METADATA = {
    "service_name": "pricing_campaign_service",
    "version": "1.0.0",
    "tags": ['pricing', 'campaign', 'v1'],
    "capabilities": ['price_simulation', 'bulk_discount', 'campaign_revert'],
}

ROUTES = [
    {"path": "/health", "methods": ["GET"], "description": "Health check"},
    {"path": "/health/ready", "methods": ["GET"], "description": "Readiness check"},
    {"path": "/health/live", "methods": ["GET"], "description": "Liveness check"},
    {"path": "/api/v1/pricing/simulate", "methods": ["POST"], "description": "Project a discount"},
    {"path": "/api/v1/pricing/apply", "methods": ["POST"], "description": "Apply a discount campaign"},
    {"path": "/api/v1/pricing/revert", "methods": ["POST"], "description": "Revert the active campaign"},
    {"path": "/api/v1/pricing/recover", "methods": ["POST"], "description": "Complete an interrupted campaign phase"},
    {"path": "/api/v1/pricing/campaign", "methods": ["GET"], "description": "Current campaign state"},
    {"path": "/api/v1/pricing/campaigns/history", "methods": ["GET"], "description": "Reverted campaigns"},
]


def get_route_metadata():
    """Get route metadata for service registration"""
    return {
        "route_count": str(len(ROUTES)),
        "routes": ",".join([r["path"] for r in ROUTES]),
        "api_version": "v1",
        "base_path": "/api/v1/pricing",
    }


__all__ = ["SERVICE_METADATA", "ROUTES", "get_route_metadata"]

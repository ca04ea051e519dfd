"""FastAPI authentication and tenant dependencies."""

from fastapi import HTTPException, Request


async def verify_api_key(request: Request) -> None:
    """Verify the API key provided in the request header.

    Args:
        request (Request): The incoming FastAPI request.

    Raises:
        HTTPException: If the API key is missing or invalid (401).
    """
    config = request.app.state.config
    expected_key = config.get_string_val("APP_API_KEY")
    provided_key = request.headers.get("X-API-Key")
    if not provided_key or provided_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key.")


async def get_tenant_id(request: Request) -> str:
    """Resolve the tenant (organization) the request acts for.

    The caller is trusted to have authenticated the user; the bridge only
    requires that every request names exactly one tenant.

    Raises:
        HTTPException: If the X-Tenant-Id header is missing or blank (401).
    """
    tenant_id = (request.headers.get("X-Tenant-Id") or "").strip()
    if not tenant_id:
        raise HTTPException(status_code=401, detail="Organization not found.")
    return tenant_id

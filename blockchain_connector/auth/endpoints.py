"""Azure AD (Microsoft identity platform v2.0) endpoint URLs."""

AUTHORITY_HOST = "https://login.microsoftonline.com"

ENDPOINT_AUTHORIZE = "authorize"
ENDPOINT_TOKEN = "token"
ENDPOINT_DEVICE_CODE = "devicecode"

CALLBACK_PATH = "/callback"


def endpoint(name: str, tenant_id: str) -> str:
    """
    Build an OAuth 2.0 endpoint URL for a tenant.

    Example:
        >>> endpoint(ENDPOINT_TOKEN, "contoso.onmicrosoft.com")
        'https://login.microsoftonline.com/contoso.onmicrosoft.com/oauth2/v2.0/token'
    """
    return f"{AUTHORITY_HOST}/{tenant_id}/oauth2/v2.0/{name}"


def callback_url(addr: str) -> str:
    """Redirect URI served by the local authorization code listener."""
    return f"http://{addr}{CALLBACK_PATH}"

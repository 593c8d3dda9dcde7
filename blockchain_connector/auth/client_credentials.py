"""
Client credentials strategy.

Machine-to-machine access: the application authenticates as itself with
its client secret. No refresh token is issued, so an expired token is
replaced by running the grant again.

See https://learn.microsoft.com/entra/identity-platform/v2-oauth2-client-creds-grant-flow
"""

from ..models import TokenResponse
from .tokens import BearerTokenProvider, request_token


class ClientCredentialsProvider(BearerTokenProvider):
    """OAuth 2.0 client credentials grant against Azure AD."""

    name = "client credentials"
    reacquire_on_expiry = True

    async def acquire(self) -> TokenResponse:
        payload = {
            "client_id": self.settings.CLIENT_ID,
            "client_secret": self.settings.CLIENT_SECRET or "",
            "grant_type": "client_credentials",
            "scope": " ".join(self.settings.scope_list),
        }
        return await request_token(self.token_url, payload, self._auth_transport)

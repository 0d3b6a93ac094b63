import logging

from src.errors import TokenExchangeError
from src.security import HardenedHttp, hardened_http

from . import build_authorization_url, new_pkce_challenge
from .dpop import DPoPKeyManager
from .oauth import initial_token_request, userinfo_request
from .types import ClientConfig, PkceChallenge, TokenResponse

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "oauth-user"


class OAuth2Client:
    """Everything the web layer needs to run one login: config, DPoP key, HTTP."""

    config: ClientConfig
    dpop: DPoPKeyManager | None
    http: HardenedHttp

    def __init__(
        self,
        config: ClientConfig,
        dpop: DPoPKeyManager | None = None,
        http: HardenedHttp = hardened_http,
    ):
        self.config = config
        self.dpop = dpop
        self.http = http

    @classmethod
    def from_config(cls, config: ClientConfig, http: HardenedHttp = hardened_http) -> "OAuth2Client":
        dpop = None
        if config.dpop_enabled:
            dpop = DPoPKeyManager.load(config.private_key_path, config.public_key_path)
        return cls(config, dpop, http)

    def begin_authorization(self) -> tuple[PkceChallenge, str]:
        pkce = new_pkce_challenge()
        url = build_authorization_url(self.config, pkce.state, pkce.code_challenge)
        return pkce, url

    async def exchange_code(self, code: str, code_verifier: str | None) -> TokenResponse:
        async with self.http.get_session() as client:
            return await initial_token_request(
                client, self.config, code, code_verifier, dpop=self.dpop
            )

    async def fetch_username(self, tokens: TokenResponse) -> str:
        """Resolves a display name for the session, falling back to a fixed one."""

        if not self.config.userinfo_uri:
            return DEFAULT_USERNAME

        try:
            async with self.http.get_session() as client:
                userinfo = await userinfo_request(
                    client, self.config.userinfo_uri, tokens, dpop=self.dpop
                )
        except TokenExchangeError as exception:
            logger.warning(f"userinfo lookup failed: {exception} status={exception.status}")
            return DEFAULT_USERNAME

        username = userinfo.get("preferred_username") or userinfo.get("sub")
        if not isinstance(username, str) or not username:
            return DEFAULT_USERNAME
        return username

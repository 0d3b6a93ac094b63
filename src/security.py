import aiohttp

USER_AGENT = "pkce-dpop-frontend/0"


# Outbound HTTP for the token and userinfo endpoints. Sessions are created per
# request because Flask runs each async view on its own event loop.
class HardenedHttp:
    timeout: float
    connect_timeout: float

    def __init__(self, timeout: float = 20, connect_timeout: float = 5):
        self.timeout = timeout
        self.connect_timeout = connect_timeout

    def get_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(self.timeout, connect=self.connect_timeout),
            headers={
                "User-Agent": USER_AGENT,
            },
        )


hardened_http = HardenedHttp()

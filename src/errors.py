class OAuth2Error(Exception):
    """Base class for login flow failures. `error_code` is safe to show users."""

    error_code: str = "authorization_failed"


class ConfigurationError(OAuth2Error):
    error_code = "configuration_error"


class CsrfValidationError(OAuth2Error):
    error_code = "invalid_state"


class MissingPkceVerifier(OAuth2Error):
    error_code = "missing_code_verifier"


class AuthorizationServerError(OAuth2Error):
    error_code = "authorization_failed"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        if error_code:
            self.error_code = error_code


class TokenExchangeError(OAuth2Error):
    error_code = "token_exchange_failed"

    status: int | None
    body: str | None

    def __init__(self, message: str, status: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status = status
        self.body = body


class KeyLoadError(OAuth2Error):
    pass


class SigningError(OAuth2Error):
    error_code = "dpop_signing_failed"

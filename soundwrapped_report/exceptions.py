"""Error taxonomy shared by the sync and report layers"""
from typing import Optional


class SoundWrappedError(Exception):
    """Base class for all application errors"""


class AuthenticationRequired(SoundWrappedError):
    """The user has to (re-)authenticate before anything can be fetched"""


class TokenUnavailable(AuthenticationRequired):
    """No credential is stored at all"""


class TokenRefreshFailed(AuthenticationRequired):
    """Exchanging the refresh token for a new credential failed"""


class TokenExchangeFailed(AuthenticationRequired):
    """Exchanging an authorization code for a credential failed"""


class UpstreamRequestFailed(SoundWrappedError):
    """A request to the upstream API failed for a reason other than an expired token"""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedResponse(UpstreamRequestFailed):
    """The upstream answered, but not with a JSON object or array"""

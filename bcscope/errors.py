"""
Fatal error taxonomy for the Bugcrowd scope sync.

Library code raises these; only the entry script catches them, logs the
cause and exits non-zero.
"""


class BugcrowdError(RuntimeError):
    pass


class FetchError(BugcrowdError):
    """Transport failure or an unexpected HTTP status."""


class WafBlockedError(FetchError):
    pass


class AuthError(BugcrowdError):
    """Login handshake rejected or left in an unknown state."""


class ConfigError(BugcrowdError):
    pass


class ParseError(BugcrowdError):
    """A page or document did not have the expected shape."""

    def __init__(self, msg: str, handle: str = ""):
        super().__init__(msg)
        self.handle = handle

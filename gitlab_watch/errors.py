# gitlab_watch/errors.py


class WatchError(Exception):
    pass


class TransportError(WatchError):
    """Connection, DNS or timeout failure while talking to GitLab."""


class DecodeError(WatchError):
    """Response body was not the JSON we expected (HTML error page, 404 message, ...)."""


class ConfigError(WatchError):
    """Bad command line input. Fatal at startup."""

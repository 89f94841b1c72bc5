"""
agent.errors
AUTHOR: carter-vin

Error kinds shared by the device agent and the listener

Handling contract:
- ConfigurationMissing: fatal at startup
- SampleReadFailure: recoverable, tick skipped
- PublishFailure: recoverable, logged, liveness still advanced
- StorageInsertFailure: propagated to the caller, never retried here
"""

from __future__ import annotations


class CatbellError(Exception):
    """Base for all catbell errors."""


class ConfigurationMissing(CatbellError):
    def __init__(self, setting: str, envvar: str | None = None, detail: str | None = None) -> None:
        self.setting = setting
        self.envvar = envvar
        message = f"missing required setting: {setting}"
        if envvar:
            message += f" (set the '{envvar}' environment variable)"
        if detail:
            message += f"; {detail}"
        super().__init__(message)


class SampleReadFailure(CatbellError):
    pass


class PublishFailure(CatbellError):
    pass


class StorageInsertFailure(CatbellError):
    pass

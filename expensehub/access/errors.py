# -*- coding: utf-8 -*-
"""
Exceptions raised by the access engine.

Ordinary negative answers ("no access") are return values, never exceptions.
"""


class AccessError(Exception):
    """Base class for access engine failures."""

    status_code = 500

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context


class StoreUnavailableError(AccessError):
    """The external data store could not be read or written."""

    status_code = 503


class AuthorizationError(AccessError):
    """The caller is not allowed to act on the requested user or company."""

    status_code = 403


class NotFoundError(AccessError):
    """A mutation referenced a user, permission or module that does not exist."""

    status_code = 404


class DependencyError(AccessError):
    """A module cannot be enabled while modules it requires are disabled."""

    status_code = 409


class ValidationError(AccessError):
    """A mutation was called with values the catalog does not accept."""

    status_code = 400


class ConflictError(AccessError):
    """A record with the same unique name already exists."""

    status_code = 409

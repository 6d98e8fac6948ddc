# src/services/errors.py


class SchedulerError(Exception):
    """Base for errors surfaced to the caller of a post or media operation."""

    status_code = 400


class Unauthorized(SchedulerError):
    status_code = 403


class ValidationError(SchedulerError):
    status_code = 400


class NotFound(SchedulerError):
    status_code = 404


class Conflict(SchedulerError):
    status_code = 409

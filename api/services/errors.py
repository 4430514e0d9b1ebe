"""
Domain errors raised by task executors and caught at the content worker boundary.
"""


class ContentWorkerError(Exception):
    """Base class for content generation failures."""


class InvalidTaskPayloadError(ContentWorkerError, ValueError):
    """A task payload is missing a required field."""

    def __init__(self, task_type: str, missing: list[str]):
        self.task_type = task_type
        self.missing = missing
        super().__init__(f"Missing required parameters for {task_type}: {', '.join(missing)}")


class GenerationFailedError(ContentWorkerError):
    """The external generator returned nothing usable."""


class ExecutorNotRegisteredError(ContentWorkerError, LookupError):
    """No executor is registered for a task type."""

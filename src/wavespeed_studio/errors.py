from __future__ import annotations


class WaveSpeedError(RuntimeError):
    """Base class for every failure raised by the generation engine."""


class RequestValidationError(WaveSpeedError, ValueError):
    """A required request field is missing or out of range."""


class SubmissionError(WaveSpeedError):
    """The remote endpoint rejected a job submission."""

    def __init__(self, status_code: int | None, body: str, endpoint: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        if status_code is None:
            message = f"API request to {endpoint or 'endpoint'} failed: {body}"
        else:
            message = f"API request failed ({status_code}): {body}"
        super().__init__(message)


class ProtocolError(WaveSpeedError):
    """A response did not have the shape the engine expects."""


class TransientPollError(WaveSpeedError):
    """A status query failed in a way that may recover on the next attempt."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TerminalJobError(WaveSpeedError):
    """The remote service declared the job failed."""

    def __init__(self, reason: str, job_id: str | None = None) -> None:
        self.reason = reason
        self.job_id = job_id
        super().__init__(f"Task failed: {reason}")


class PollTimeoutError(WaveSpeedError, TimeoutError):
    """The attempt budget ran out before the job reached a terminal state."""

    def __init__(self, job_id: str, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(f"Timed out waiting for job {job_id} after {attempts} attempts.")


class EmptyResultError(WaveSpeedError):
    """The job completed but never reported any output."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} completed but no output found.")


class UnrecognizedArtifactShape(WaveSpeedError, ValueError):
    """A result payload could not be mapped to an artifact URI."""

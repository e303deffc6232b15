"""
Domain exceptions raised by the services and translated by the routers.
"""
import json
from typing import Optional


class JobNotFoundError(Exception):
    """Job does not exist or is not visible to the requester."""

    def __init__(self, job_id: str):
        super().__init__(f'Job not found: {job_id}')
        self.job_id = job_id


class UserNotFoundError(Exception):
    def __init__(self, user_id: str):
        super().__init__(f'User not found: {user_id}')
        self.user_id = user_id


class InsufficientCreditsError(Exception):
    def __init__(self, message: str = 'Not enough credits'):
        super().__init__(message)


class InvalidRequestError(Exception):
    """Request failed validation in the acceptance layer."""


class QueueError(Exception):
    """A job was created but its trigger event could not be published."""


class EventValidationError(Exception):
    """Event payload does not match the schema registered for its name."""


class EventPublishError(Exception):
    """The event bus refused the event."""


class NonRetriableError(Exception):
    """Raised inside a durable function to stop retrying immediately."""


# Structured error code a provider may return for a duplicate voice name
NAME_COLLISION_CODE = 'voice_exists'


class ProviderError(Exception):
    """
    A generation backend returned a non-2xx response or could not be reached.

    Attributes:
        service: Provider namespace that was called
        status_code: HTTP status (0 for transport failures)
        detail: Response body text
        code: Machine-readable error code from a JSON body, if present
    """

    def __init__(self, service: str, status_code: int, detail: str, code: Optional[str] = None):
        super().__init__(f'{service} API error ({status_code}): {detail}')
        self.service = service
        self.status_code = status_code
        self.detail = detail
        self.code = code if code is not None else _extract_code(detail)

    @property
    def is_name_collision(self) -> bool:
        """
        Whether the provider rejected an upload because the voice name exists.

        The structured code is authoritative. Backends that only return text
        are matched on the 'already exists' phrase.
        """
        if self.code is not None:
            return self.code == NAME_COLLISION_CODE
        return self.status_code in (400, 409) and 'already exists' in self.detail


def _extract_code(detail: str) -> Optional[str]:
    try:
        body = json.loads(detail)
    except (TypeError, ValueError):
        return None
    if isinstance(body, dict):
        code = body.get('code')
        if isinstance(code, str):
            return code
        nested = body.get('detail')
        if isinstance(nested, dict) and isinstance(nested.get('code'), str):
            return nested['code']
    return None

"""
Доменные ошибки сервиса назначения ревьюверов.

Каждая ошибка несет вид (``kind``), по которому внешний слой выбирает
ответ, и код (``code``), который уходит клиенту как есть.
"""
import enum

from django.core.exceptions import ObjectDoesNotExist


class ErrorKind(enum.Enum):
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    VALIDATION_FAILED = 'validation_failed'
    RESOURCE_EXHAUSTED = 'resource_exhausted'
    UPSTREAM = 'upstream'


class ServiceError(Exception):
    kind = ErrorKind.UPSTREAM
    code = 'SERVER_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError, ObjectDoesNotExist):
    kind = ErrorKind.NOT_FOUND
    code = 'NOT_FOUND'
    default_message = 'resource not found'


class AuthorNotFound(NotFoundError):
    default_message = 'author not found'


class PRNotFound(NotFoundError):
    default_message = 'PR not found'


class TeamNotFound(NotFoundError):
    default_message = 'team not found'


class UserNotFound(NotFoundError):
    default_message = 'user not found'


class ConflictError(ServiceError):
    kind = ErrorKind.CONFLICT


class PRAlreadyExists(ConflictError):
    code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class PRMerged(ConflictError):
    code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class TeamAlreadyExists(ConflictError):
    code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class InvalidRequest(ServiceError):
    kind = ErrorKind.VALIDATION_FAILED
    code = 'VALIDATION_ERROR'
    default_message = 'invalid request'


class NotAssigned(ServiceError):
    kind = ErrorKind.VALIDATION_FAILED
    code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidate(ServiceError):
    kind = ErrorKind.RESOURCE_EXHAUSTED
    code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'

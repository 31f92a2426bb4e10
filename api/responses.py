import logging

from rest_framework import status
from rest_framework.response import Response

from .errors import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_FAILED: status.HTTP_409_CONFLICT,
    ErrorKind.RESOURCE_EXHAUSTED: status.HTTP_409_CONFLICT,
    ErrorKind.UPSTREAM: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

STATUS_BY_CODE = {
    'VALIDATION_ERROR': status.HTTP_400_BAD_REQUEST,
    'TEAM_EXISTS': status.HTTP_400_BAD_REQUEST,
}


def error_response(code: str, message: str, http_status: int) -> Response:
    return Response({
        'error': {
            'code': code,
            'message': message
        }
    }, status=http_status)


def validation_error(message: str) -> Response:
    return error_response('VALIDATION_ERROR', message, status.HTTP_400_BAD_REQUEST)


def service_error_response(exc: ServiceError) -> Response:
    http_status = STATUS_BY_CODE.get(exc.code, STATUS_BY_KIND[exc.kind])
    return error_response(exc.code, exc.message, http_status)


def server_error(request) -> Response:
    """Неожиданная ошибка: пишем в лог с трейсбеком, наружу отдаем общий ответ."""
    logger.exception("unhandled error: %s %s", request.method, request.path)
    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)


def _first_error(errors, path: str = '') -> str:
    if isinstance(errors, dict):
        field, nested = next(iter(errors.items()))
        if field != 'non_field_errors':
            path = f'{path}.{field}' if path else field
        return _first_error(nested, path)
    if isinstance(errors, list):
        index, nested = next((i, err) for i, err in enumerate(errors) if err)
        if isinstance(nested, (dict, list)):
            return _first_error(nested, f'{path}[{index}]')
        errors = nested
    return f'{path}: {errors}' if path else str(errors)


def serializer_error(errors) -> Response:
    """Ошибки входного сериализатора -> 400 VALIDATION_ERROR с первым сообщением."""
    return validation_error(_first_error(errors))

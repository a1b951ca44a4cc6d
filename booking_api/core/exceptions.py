"""Error taxonomy shared by the services and the HTTP layer."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = 'An unexpected error occurred.'


class BookingApiError(Exception):
    kind = 'internal'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(BookingApiError):
    kind = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Resource not found.'


class ConflictError(BookingApiError):
    kind = 'conflict'
    status_code = status.HTTP_409_CONFLICT
    default_message = 'Request conflicts with the current state.'


class UnauthorizedError(BookingApiError):
    kind = 'unauthorized'
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = 'Authentication required.'


class ForbiddenError(BookingApiError):
    kind = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'You are not allowed to perform this action.'


class InvalidInputError(BookingApiError):
    kind = 'invalid_input'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Invalid input.'


class InternalError(BookingApiError):
    pass


class SlotNotFoundError(NotFoundError):
    default_message = 'The requested time slot does not exist.'


class BookingNotFoundError(NotFoundError):
    default_message = 'Booking not found.'


class SlotUnavailableError(ConflictError):
    default_message = 'This time slot is no longer available.'


class EmailAlreadyRegisteredError(ConflictError):
    default_message = 'Email already exists.'


class AdminAlreadyExistsError(ConflictError):
    default_message = 'An admin user already exists.'


class InvalidCredentialsError(UnauthorizedError):
    default_message = 'Invalid credentials.'


class InvalidSetupKeyError(UnauthorizedError):
    default_message = 'Invalid setup key.'


class InvalidTokenError(UnauthorizedError):
    default_message = 'Invalid token.'


class InvalidSlotError(InvalidInputError):
    pass


class PersistenceFailure(InternalError):
    pass


def _error_response(status_code: int, kind: str, detail) -> JSONResponse:
    headers = {'WWW-Authenticate': 'Bearer'} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content={'error': kind, 'detail': detail}, headers=headers)


async def booking_api_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, BookingApiError) else InternalError()
    return _error_response(error.status_code, error.kind, error.message)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    # ctx may carry the raw ValueError, which is not JSON serializable
    details = [{key: value for key, value in error.items() if key != 'ctx'} for error in errors]
    return _error_response(status.HTTP_400_BAD_REQUEST, InvalidInputError.kind, jsonable_encoder(details))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.kind, INTERNAL_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingApiError, booking_api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

# notification_client/api/deps.py
from fastapi import HTTPException, Request, status

from notification_client.errors import (
    NetworkError,
    NotFoundError,
    NotificationClientError,
    ValidationError,
)
from notification_client.services.client import NotificationClient


def get_client(request: Request) -> NotificationClient:
    client = getattr(request.app.state, "client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Client not started",
        )
    return client


def http_error(e: NotificationClientError) -> HTTPException:
    """Traduce nuestros errores a la respuesta HTTP de la consola."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, NetworkError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

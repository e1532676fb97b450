# notification_client/errors.py


class NotificationClientError(Exception):
    """Base de todos los errores del cliente de notificaciones."""


class NetworkError(NotificationClientError):
    """La petición falló, expiró o el servidor respondió algo inesperado."""


class NotFoundError(NotificationClientError):
    """El servidor no reconoce el id (404)."""


class ValidationError(NotificationClientError):
    """Evento o mutación mal formada (local o rechazada por el servidor)."""


class TransportError(NotificationClientError):
    """
    Se perdió la conexión push. No es fatal: el transporte reintenta solo,
    así que nunca llega a los consumidores.
    """

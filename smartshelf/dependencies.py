from fastapi import Request

from smartshelf.services.notification_service import NotificationPublisher


def get_publisher(request: Request) -> NotificationPublisher:
    return request.app.state.publisher


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None

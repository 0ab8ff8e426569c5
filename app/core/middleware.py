from starlette.middleware.base import BaseHTTPMiddleware

from .logging import client_ip_var


def resolve_client_ip(headers, client_host: str | None) -> str | None:
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return client_host


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        client_host = request.client.host if request.client else None
        request.state.ip = resolve_client_ip(request.headers, client_host)
        request.state.user_agent = request.headers.get("user-agent")
        token = client_ip_var.set(request.state.ip)
        try:
            return await call_next(request)
        finally:
            client_ip_var.reset(token)

"""HTTP layer: request/response models, executors and the cookie jar."""

from .models import (
    Headers,
    Request,
    Response,
    REDIRECT_STATUS_CODES,
    url_host,
)

from .client import (
    RequestExecutor,
    CurlCffiExecutor,
    redirect_request,
)

from .cookies import (
    Cookie,
    CookieJar,
    parse_set_cookie,
)

__all__ = [
    "Headers",
    "Request",
    "Response",
    "REDIRECT_STATUS_CODES",
    "url_host",
    "RequestExecutor",
    "CurlCffiExecutor",
    "redirect_request",
    "Cookie",
    "CookieJar",
    "parse_set_cookie",
]

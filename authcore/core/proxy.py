"""Reverse-proxy awareness so ``request.remote_addr`` reflects the real client."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Wrap the WSGI app with :class:`~werkzeug.middleware.proxy_fix.ProxyFix`.

    Parameters
    ----------
    app: flask.Flask
        Application whose WSGI pipeline should respect upstream proxy headers.

    Notes
    -----
    ``USE_PROXYFIX`` (default ``True``) toggles the middleware and
    ``PROXYFIX_HOPS`` (default ``1``) sets how many ``X-Forwarded-For`` hops
    are trusted. The login flow records ``request.remote_addr`` as the
    account's last login IP, so the hop count must match the deployment.
    """
    if not app.config.get("USE_PROXYFIX", True):
        return
    hops = int(app.config.get("PROXYFIX_HOPS", 1))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=1, x_host=1)

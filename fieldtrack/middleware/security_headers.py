"""
Security headers middleware.

The tracker only serves JSON and uploaded evidence photos, so the policy
is locked down: no scripts, images only from self.

Usage:
    from fieldtrack.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'none'; img-src 'self'; frame-ancestors 'none'",
        )

        # Prevent MIME-type sniffing on uploaded photos
        response.headers.setdefault("X-Content-Type-Options", "nosniff")

        response.headers.setdefault("X-Frame-Options", "DENY")

        # HTTPS enforcement (ignored over HTTP, but ready for production)
        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
        )

        response.headers.setdefault("Referrer-Policy", "no-referrer")

        # Remove server identification
        response.headers.pop("Server", None)

        return response

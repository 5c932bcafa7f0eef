"""
HTTP routers for the portfolio API, one module per area.
"""

from portfolio_backend.routers import (
    analytics,
    auth,
    carousel,
    contact_form,
    content,
    health,
    notifications,
    search,
    uploads,
)

ROUTERS = [
    health.router,
    auth.router,
    content.router,
    carousel.router,
    uploads.router,
    analytics.router,
    search.router,
    contact_form.router,
    notifications.router,
]

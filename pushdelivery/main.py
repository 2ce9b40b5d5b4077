"""Application entrypoint that delegates to the app factory."""

from pushdelivery.core.app_factory import create_app

app = create_app()

# Serverless entry point: the platform routes /api/* to this module and
# serves the ASGI `app` it exposes.

from storefront.main import app  # noqa: F401

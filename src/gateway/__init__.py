"""Prediction gateway: cached, fallback-aware front for image-generation jobs.

The package exposes :func:`create_app` for ASGI servers; the engine itself
(result cache, provider adapter, job lifecycle manager and request router)
lives in the ``cache``, ``providers`` and ``generation`` sub-packages.
"""

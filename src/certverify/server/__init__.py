"""Production server integration (gunicorn runner, WSGI module)."""

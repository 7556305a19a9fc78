"""Service layer shared by the Flask API and the CLI.

Services open their own SQLite connections, raise `athlete_hub.errors.ApiError`
subclasses for request-level failures and `ValidationError` for bad input.
"""

"""
ASGI entry point for the live guidance server.

Loads a local .env before configuration is read, then builds the app.
Used by uvicorn / gunicorn: `uvicorn server.asgi:app`.
"""

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()

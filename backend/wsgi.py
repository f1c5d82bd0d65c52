"""
Entry point for the RxCompare backend.
Run with: python wsgi.py
"""

import logging

from rxcompare.config import Config
from rxcompare.main import create_app

logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()

if __name__ == "__main__":
    app.run(host="127.0.0.1", port=5000, debug=app.config.get("DEBUG", False))

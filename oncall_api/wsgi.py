import logging
import os

from oncall_api import create_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(os.getenv("ONCALL_CONFIG") or None)

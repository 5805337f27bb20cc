# module backend.app
import logging
import os

from backend.app_setup.factory import create_app

# Les loggers backend.* héritent de cette configuration; uvicorn garde la sienne
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "info").upper(),
    format="%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s",
)

app = create_app()

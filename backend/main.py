import logging
import sys

import uvicorn
from dotenv import load_dotenv

load_dotenv(".env")

from routewatch.core.application import create_app
from routewatch.core.settings import Settings

settings = Settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(levelname)s - [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

app = create_app(settings)


if __name__ == "__main__":
    logger.info("Starting server on port %s", settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port)

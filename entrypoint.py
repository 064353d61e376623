import uvicorn
import constants
from app import app
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    """Run the chat server; logging is configured when `app` is imported."""
    logger.info(f"Starting chat server on {constants.HOST}:{constants.PORT}")
    uvicorn.run(app, host=constants.HOST, port=constants.PORT, log_config=None)


if __name__ == "__main__":
    main()

import os
import logging

import uvicorn
from dotenv import load_dotenv

from service.config import setup_logging

load_dotenv()

log_level = setup_logging()

logging.info("Session service starting")
logging.info(f"Log level: {log_level}")

if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    if os.getenv("MODE") == "dev":
        logging.info("Running in development mode with auto-reload")
        logging.info(f"Tip: check service health via `curl http://127.0.0.1:{port}/status`")
        uvicorn.run("service:create_app", factory=True, reload=True, log_level="info", port=port)
    else:
        logging.info("Running in production mode")
        from service import create_app
        uvicorn.run(create_app(), host="0.0.0.0", port=port)

"""
Entry point to run the chat API (HTTP + WebSocket) under uvicorn.
"""
import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv(override=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


if __name__ == "__main__":
    uvicorn.run(
        "app.api:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        # the connection registry is process-local; more workers would split it
        workers=1,
    )

"""Start the AirChat server with uvicorn."""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "airchat.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )

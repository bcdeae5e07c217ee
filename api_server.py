#!/usr/bin/env python
"""Run the backup API server."""

import os

import uvicorn


def main():
    """Run the FastAPI application."""
    uvicorn.run(
        "classora_backup.api.app:app",
        host=os.getenv("BACKUP_API_HOST", "0.0.0.0"),
        port=int(os.getenv("BACKUP_API_PORT", "8000")),
        reload=os.getenv("BACKUP_API_RELOAD", "false").lower() == "true",
        log_level="info"
    )


if __name__ == "__main__":
    main()

"""
main entry point
"""
import uvicorn

from app.config import Settings


def main():
    """start the backend"""
    settings = Settings.from_env()
    uvicorn.run("server.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

import uvicorn

from animetracker.config import load_settings


def main():
    settings = load_settings()
    uvicorn.run("animetracker.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()

from .app import create_app
from .config import Settings

settings = Settings.from_env()
app = create_app(settings)


def main():
    app.run(host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()

from grom.core.app_factory import create_app

app = create_app()


def run() -> None:
    """Serve the app with uvicorn (``grom-serve`` console script)."""
    import uvicorn

    uvicorn.run("grom.main:app", host="0.0.0.0", port=8000)

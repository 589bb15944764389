"""Allow ``python -m xnbtedit``."""

from xnbtedit.cli import app

if __name__ == "__main__":
    app()

"""
Entry point for running i18n-app-translator as a module.

Usage:
    python -m i18n_app_translator --help
    python -m i18n_app_translator translate --source en.json --target ja.json --lang ja
"""
from .cli import app


if __name__ == "__main__":
    app()

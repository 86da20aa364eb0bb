"""
Entry point for running JSONTrans-LLMs as a module.

Usage:
    python -m jsontrans_llms --help
    python -m jsontrans_llms sync --folder locales --model gpt-4o-mini
    python -m jsontrans_llms check --folder locales
"""
from .cli import app


if __name__ == "__main__":
    app()

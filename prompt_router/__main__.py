"""Entry point for running the router directly.

Usage: python -m prompt_router route "Summarize this article"
"""

from prompt_router.cli_runner import main_entry

if __name__ == "__main__":
    main_entry()

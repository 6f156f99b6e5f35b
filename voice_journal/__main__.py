"""Package entry point for ``python -m voice_journal``.

WHY: Operators run the bot as ``python -m voice_journal`` for long
polling, or ``python -m voice_journal --webhook`` for the FastAPI webhook
server. Python's ``-m`` flag looks for ``__main__.py`` inside the package.

HOW: Delegates to the CLI's main() function, which parses the flags.
"""

from voice_journal.cli import main

if __name__ == "__main__":
    main()

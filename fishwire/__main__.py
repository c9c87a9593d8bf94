"""Package entry point for ``python -m fishwire``.

WHY: Users run the client as ``python -m fishwire tts "Hello" -o out.mp3``.
Python's ``-m`` flag looks for ``__main__.py`` inside the package and
executes it.

HOW: Delegates to the CLI's main() function.
"""

from fishwire.cli import main

if __name__ == "__main__":
    main()

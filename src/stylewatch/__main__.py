"""Allow running stylewatch with ``python -m stylewatch``."""

from stylewatch.cli.main import main

if __name__ == "__main__":
    main()

"""Allow running as ``python -m music_organizer``."""

from music_organizer.main import main

if __name__ == "__main__":
    main()

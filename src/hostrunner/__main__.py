"""Allow running hostrunner with ``python -m hostrunner``."""

from hostrunner.cli import main

if __name__ == "__main__":
    main()

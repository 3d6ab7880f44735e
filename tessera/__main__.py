"""Allow ``python -m tessera``."""

from tessera.templates.cli import main

if __name__ == "__main__":
    main()

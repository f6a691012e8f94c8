"""Entry point for ``python -m catlet``."""

from catlet.cli.main import main


if __name__ == "__main__":
    main()

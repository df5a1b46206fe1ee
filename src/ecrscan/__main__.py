"""Allow running as ``python -m ecrscan``."""

from ecrscan.cli.app import main

if __name__ == "__main__":
    main()

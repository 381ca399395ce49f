"""Package entry point for ``python -m caption_orchestrator``."""

from caption_orchestrator.cli import main

if __name__ == "__main__":
    main()

"""Main entry point for the Journal RAG server."""

import asyncio
import sys

from journal_rag import Settings
from journal_rag.core.server import JournalRAGServer


async def main() -> None:
    """Main entry point."""
    try:
        settings = Settings()
        server = JournalRAGServer(settings)
        await server.start()

    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

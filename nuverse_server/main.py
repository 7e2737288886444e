"""
Main entry point for the NuVerse session server.

Usage:
    python -m nuverse_server.main
    
Or, once installed:
    nuverse-server
"""

from nuverse_server.network.server import main


if __name__ == "__main__":
    main()

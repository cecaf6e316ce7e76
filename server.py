import sys

from server_utils import log_message
from game_server import GameServer


def main():
    server = GameServer()
    try:
        server.open()
    except OSError as e:
        log_message(f"[SERVER] Failed to bind listening sockets: {e}")
        server.transport.close()
        return 1

    log_message("[SERVER] Ready. Waiting for players...")
    try:
        server.run()
    except KeyboardInterrupt:
        log_message("\n[SERVER] Shutting down")
    finally:
        server.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())

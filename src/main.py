from chat_handler import chat_loop
from config import DB_PATH, setup_logging
from gemini_gateway import ConfigError, GeminiGateway
from local_store import LocalStore
from session_manager import SessionManager

if __name__ == "__main__":
    setup_logging()
    try:
        gateway = GeminiGateway()
    except ConfigError as e:
        raise SystemExit(str(e))
    manager = SessionManager(LocalStore(DB_PATH), gateway)
    chat_loop(manager)

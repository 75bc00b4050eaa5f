import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Get your Gemini API key (checked when the gateway is built, not on import)
API_KEY = os.getenv("GEMINI_API_KEY")

# You can switch between gemini-2.0-flash or gemini-2.5-flash
MODEL_NAME = os.getenv("MODEL_NAME", "gemini-2.0-flash")

DB_PATH = os.getenv("CHAT_DB_PATH", "chat_store.db")
LOG_FILE = os.getenv("CHAT_LOG_FILE", "chat_session.log")

# Number of trailing turns replayed with every request
CONTEXT_WINDOW = int(os.getenv("CONTEXT_WINDOW", "5"))

HISTORY_KEY = "chat_history"
PERSONA_KEY = "chat_persona"

LOG_FORMAT = '%(asctime)s - %(levelname)s - Persona %(persona_id)s - %(message)s'


class _PersonaDefault(logging.Filter):
    """Give records from other libraries a persona_id so the format never fails."""
    def filter(self, record):
        if not hasattr(record, 'persona_id'):
            record.persona_id = '-'
        return True


def setup_logging(level=logging.INFO, log_file: str = LOG_FILE):
    handlers = [logging.FileHandler(log_file, mode='a'), logging.StreamHandler()]
    for handler in handlers:
        handler.addFilter(_PersonaDefault())
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)

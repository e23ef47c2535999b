import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Global Constants
OPENAI_MODEL = "gpt-4-turbo"
OPENAI_TEMPERATURE = 0.7
SYSTEM_PROMPT = "You are an expert eCommerce analyst producing detailed data-driven reports."

# Job processing
REPORTS_COLLECTION = "reportRequests"
PROCESSOR_BATCH_SIZE = 5
DEFAULT_MAX_RETRIES = 3
ANONYMOUS_USER = "anonymous"

# Directory Configuration
BASE_DIR = Path(__file__).parent.parent.parent
LOGS_DIR = Path(os.getenv("KPI_REPORTS_LOGS_DIR", BASE_DIR / "logs"))

# Ensure directories exist
LOGS_DIR.mkdir(parents=True, exist_ok=True)

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

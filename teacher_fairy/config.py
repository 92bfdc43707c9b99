"""
Configuration management for the Teacher Fairy backend.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Base paths
BASE_DIR = Path(__file__).parent.parent
PACKAGE_DIR = Path(__file__).parent
DATA_DIR = PACKAGE_DIR / "data"

# Load environment variables
load_dotenv(BASE_DIR / ".env")

# User data
HOME_DIR = Path.home()
STATE_FILE = Path(os.getenv("TEACHER_FAIRY_STATE_FILE", str(HOME_DIR / ".teacher_fairy_state.json")))
SEED_STANDARDS_FILE = DATA_DIR / "standards_seed.json"
STATE_SCHEMA_VERSION = 1

# API Configuration
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = 0.3
OPENAI_MAX_TOKENS = 2500

# Server configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
DEBUG = os.getenv("DEBUG", "False").lower() == "true"
PLAN_ENDPOINT_URL = os.getenv("PLAN_ENDPOINT_URL", f"http://localhost:{PORT}/api/plan")
PLAN_REQUEST_TIMEOUT = 90

# Standards suggestion
KEYWORD_MIN_LENGTH = 4
MAX_CORPUS_KEYWORDS = 50
SUGGESTION_FALLBACK_LIMIT = 12
DEFAULT_JURISDICTION = "Colorado"
SUBJECT_ALIASES = {"Spanish": "World Languages"}

# Plan forms
MAX_WEEK_DAYS = 5
FILE_TEXT_MAX_CHARS = 5000
SUPPORTED_TEXT_TYPES = ['.txt', '.md', '.csv', '.json', '.html', '.htm']
SUPPORTED_FILE_TYPES = SUPPORTED_TEXT_TYPES + ['.docx', '.pdf']

# Drive backup
BACKUP_FILENAME = "teacher_fairy_backup_all.json"
DEFAULT_DRIVE_FOLDER = "Teacher Fairy Backups"
AUTO_BACKUP_MIN_MINUTES = 2
AUTO_BACKUP_MAX_MINUTES = 120
AUTO_BACKUP_DEFAULT_MINUTES = 3

# Option lists offered by the front end
FRAMEWORKS = [
    "Savvas: Connect / Investigate / Synthesize / Demonstrate",
    "Bloom's Taxonomy",
    "Fink's Taxonomy of Significant Learning",
    "SOLO Taxonomy",
    "Marzano's New Taxonomy",
    "UbD (Backwards Design)",
    "Gradual Release (I Do / We Do / You Do)",
    "Inquiry Arc (NCSS)",
]
SUBJECTS = [
    "Social Studies", "Spanish", "English Language Arts", "Mathematics", "Science",
    "World Languages", "Computer Science / Tech", "Health & PE", "Arts", "CTE",
]
OBJECTIVE_STYLES = ["I can…", "SWBAT…", "Students will…", "By the end, learners will…"]
MATERIALS = [
    "Curriculum", "DBQ", "Primary Sources", "Textbook", "Novel/Trade Book", "Video",
    "Lab/Activity Kit", "Slide Deck", "Worksheet", "Project Brief", "Rubric", "Anchor Chart",
]
STATES = ["Colorado"]
GRADE_BANDS = ["K-2", "3-5", "6-8", "9-12"]


class Config:
    """Application configuration class."""

    def __init__(self):
        self.openai_model = OPENAI_MODEL
        self.plan_endpoint_url = PLAN_ENDPOINT_URL
        self.keyword_min_length = KEYWORD_MIN_LENGTH
        self.max_corpus_keywords = MAX_CORPUS_KEYWORDS
        self.suggestion_fallback_limit = SUGGESTION_FALLBACK_LIMIT
        self.file_text_max_chars = FILE_TEXT_MAX_CHARS

    def to_dict(self):
        return {
            "openai_model": self.openai_model,
            "plan_endpoint_url": self.plan_endpoint_url,
            "keyword_min_length": self.keyword_min_length,
            "max_corpus_keywords": self.max_corpus_keywords,
            "suggestion_fallback_limit": self.suggestion_fallback_limit,
            "file_text_max_chars": self.file_text_max_chars,
        }

    def update(self, data: dict):
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)


# Global config instance
config = Config()

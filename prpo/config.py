"""
Configuration for the PR→PO triage agent.
"""

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import os
from datetime import datetime
from typing import List, Optional


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


class Config:
    """Base configuration."""

    # LLM Configuration (price estimation for materials without PO history)
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "gemini")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gemini-1.5-flash")
    LLM_MOCK_MODE: bool = _env_flag("LLM_MOCK_MODE")
    LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")
    GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", os.getenv("LLM_API_KEY", ""))
    LLM_API_BASE: Optional[str] = os.getenv("LLM_API_BASE", None)
    LLM_TEMPERATURE: float = 0.1
    LLM_MAX_TOKENS: int = 1024
    LLM_TIMEOUT: int = int(os.getenv("LLM_TIMEOUT", "30"))
    LLM_MAX_CALLS_PER_RUN: int = int(os.getenv("LLM_MAX_CALLS_PER_RUN", "10"))
    LLM_MOCK_UNIT_PRICE: float = 50000.0

    # Reference date for urgency scoring (never wall-clock "now")
    SIMULATION_DATE: datetime = datetime.fromisoformat(os.getenv("SIMULATION_DATE", "2026-01-01"))

    # Validation
    REQUIRED_FIELDS: List[str] = [
        "requisition_id",
        "material_number",
        "description",
        "requisition_date",
        "required_by_date",
        "lead_time",
        "sourcing_group",
        "material_group",
    ]

    # Material keys
    MATERIAL_PREFIX_LENGTH: int = 4
    PZAF_MARKER: str = "PZAF"
    SIMILAR_KEY_PREFIX_LENGTH: int = 6
    SIMILAR_MATERIALS_LIMIT: int = 5

    # Urgency thresholds (remaining days, inclusive)
    URGENCY_URGENT: int = 2
    URGENCY_NORMAL: int = 5

    # Quotation planning
    URGENT_CREATION_TYPES: List[str] = ["super-urgent", "urgent", "초긴급", "긴급"]
    URGENT_RESPONSE_WINDOW_DAYS: int = 1
    DEFAULT_RESPONSE_WINDOW_DAYS: int = 3
    TECH_EVALUATION_VENDOR_PREFIX: str = "2"
    REASON_DESIGNATED: str = (
        "AC002_2: Given the nature or purpose of the contract, its objective cannot be met "
        "except by a party holding special equipment, materials or goods, or a proven track "
        "record, and there are no more than 10 eligible bidders."
    )
    REASON_PRIVATE: str = (
        "SV023_2: Owing to the characteristics of the contract purpose, competitive bidding "
        "is not possible, or putting it out to competitive bidding would be clearly "
        "disadvantageous."
    )
    NON_APPROVAL_CODE: str = "002_2"
    NON_APPROVAL_REASON: str = "BULK material; requisition issued according to the production BOM"

    # Price estimation
    DEFAULT_ESTIMATED_TOTAL: float = 1_000_000.0

    # Appropriateness review
    PRIVATE_CONTRACT_TOLERANCE_PCT: float = 15.0
    DUMPING_RATIO: float = 0.7
    QUOTE_SIMULATION_LOW: float = 0.8
    QUOTE_SIMULATION_HIGH: float = 1.2
    QUOTE_SIMULATION_SEED: Optional[int] = _env_optional_int("QUOTE_SIMULATION_SEED")

    # Notifications
    NOTIFY_EMAIL_DOMAIN: str = os.getenv("NOTIFY_EMAIL_DOMAIN", "company.com")
    UNASSIGNED_REQUESTER: str = "unassigned"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = os.getenv("LOG_FILE", "prpo_triage.log")

    # Data Paths
    SAMPLE_DATA_DIR: str = os.getenv("SAMPLE_DATA_DIR", os.path.join(os.path.dirname(__file__), "data"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_DEBUG: bool = _env_flag("API_DEBUG")

    # Workflow Configuration
    GRAPH_RECURSION_LIMIT: int = 50

    @property
    def pricing_enabled(self) -> bool:
        """True when an LLM pricing client can be built."""
        if self.LLM_MOCK_MODE or self.LLM_PROVIDER == "mock":
            return True
        if self.LLM_PROVIDER == "gemini":
            return bool(self.GOOGLE_API_KEY)
        return bool(self.LLM_API_KEY)

    @classmethod
    def validate(cls) -> None:
        """Validate configuration."""
        if cls.LLM_PROVIDER not in ["openai", "azure", "custom", "gemini", "mock"]:
            raise ValueError(f"Invalid LLM_PROVIDER: {cls.LLM_PROVIDER}")

        if cls.URGENCY_URGENT > cls.URGENCY_NORMAL:
            raise ValueError("URGENCY_URGENT must not exceed URGENCY_NORMAL")

        if cls.LLM_MAX_CALLS_PER_RUN < 0:
            raise ValueError("LLM_MAX_CALLS_PER_RUN must be >= 0")

        if cls.QUOTE_SIMULATION_LOW > cls.QUOTE_SIMULATION_HIGH:
            raise ValueError("QUOTE_SIMULATION_LOW must not exceed QUOTE_SIMULATION_HIGH")


class DevelopmentConfig(Config):
    """Development configuration."""
    LOG_LEVEL = "DEBUG"
    API_DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    LLM_TEMPERATURE = 0.0
    LOG_LEVEL = "INFO"
    API_DEBUG = False


class TestConfig(Config):
    """Test configuration."""
    LLM_TEMPERATURE = 0.0
    LOG_LEVEL = "DEBUG"
    LOG_FILE = ""


def get_config(env: str = None) -> Config:
    """Get configuration based on environment."""
    if env is None:
        env = os.getenv("ENV", "development").lower()

    if env == "production":
        config = ProductionConfig()
    elif env == "test":
        config = TestConfig()
    else:
        config = DevelopmentConfig()

    # Validate configuration on creation
    config.validate()
    return config

"""
Centralized settings for the Jupiter document engine.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import dotenv

dotenv.load_dotenv()

CONFIG_DIR = Path(__file__).parent / "config"


class JupiterSettings:
    """Configuration values read from the environment (or a .env file)."""

    # Collaborator data
    DATA_DIR: str = os.getenv("JUPITER_DATA_DIR", "data")

    # Rule and mapping files
    FACT_MAP_FILE: str = os.getenv("JUPITER_FACT_MAP_FILE", str(CONFIG_DIR / "fact_map.yaml"))
    QC_RULES_FILE: str = os.getenv("JUPITER_QC_RULES_FILE", str(CONFIG_DIR / "qc_rules.json"))

    # Payment amounts are rounded to this many places
    AMOUNT_DECIMALS: int = int(os.getenv("JUPITER_AMOUNT_DECIMALS", "4"))

    LOG_LEVEL: str = os.getenv("JUPITER_LOG_LEVEL", "INFO")

    @classmethod
    def data_path(cls, filename: str, data_dir: Optional[str] = None) -> Path:
        """
        Resolve a collaborator file inside the data directory.

        Args:
            filename: File name, e.g. "documents.json"
            data_dir: Optional override for DATA_DIR

        Returns:
            Path to the file
        """
        return Path(data_dir or cls.DATA_DIR) / filename


settings = JupiterSettings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the CLI and API entry points."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

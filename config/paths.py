from pathlib import Path
import os

# === Base project path ===
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# === Common directories ===
CONFIG_DIR = PROJECT_ROOT / "config"
LOG_DIR = Path(os.getenv("SCHEDULER_LOG_DIR", PROJECT_ROOT))

# === Default files ===
CONSTANTS_PATH = CONFIG_DIR / "constants.json"
LOG_PATH = LOG_DIR / "schedule_run.log"

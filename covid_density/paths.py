import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("BASE_DIR", Path(__file__).parent.parent))

# Data folder (local inputs)
DATA_DIR = BASE_DIR / "data"
DENSITY_FILE = DATA_DIR / "density.csv"

# Outputs handed to charts and reports
OUTPUT_DIR = BASE_DIR / "output"

# Downloaded sources
CACHE_DIR = BASE_DIR / ".cache"

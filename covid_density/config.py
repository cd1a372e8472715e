#
#  config.py
#

"""
Settings for a pipeline run. Every option has a default, and can be overridden (in increasing order of
precedence) from a YAML file, from `COVID_DENSITY_*` environment variables (a `.env` file is loaded if present)
and from command-line options.
"""
import datetime as dt
from dataclasses import dataclass, field, fields, replace
from os import environ as env
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
import yaml
from dotenv import load_dotenv

from covid_density import paths

log = structlog.get_logger()

ENV_FILE = Path(env.get("ENV_FILE", paths.BASE_DIR / ".env"))

# prefix of environment variables that override config options
ENV_PREFIX = "COVID_DENSITY_"

JHU_TIME_SERIES_URL = (
    "https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/csse_covid_19_data/csse_covid_19_time_series"
)
CASES_URL = f"{JHU_TIME_SERIES_URL}/time_series_covid19_confirmed_US.csv"
DEATHS_URL = f"{JHU_TIME_SERIES_URL}/time_series_covid19_deaths_US.csv"


def load_env():
    load_dotenv(ENV_FILE)


load_env()

# When DEBUG is on, tracebacks of fatal errors are shown
DEBUG = env.get("DEBUG") in ("True", "true", "1")

DateLike = Union[str, dt.date]


def to_month_start(value: DateLike) -> dt.date:
    """Parse `YYYY-MM-DD`, `YYYY-MM` or a date, and return the first day of its month."""
    if isinstance(value, dt.datetime):
        value = value.date()
    if not isinstance(value, dt.date):
        text = str(value).strip()
        try:
            if len(text) == 7:
                value = dt.datetime.strptime(text, "%Y-%m").date()
            else:
                value = dt.date.fromisoformat(text)
        except ValueError as e:
            raise ValueError(f"Invalid snapshot month {text!r}, expected YYYY-MM-DD or YYYY-MM") from e
    return value.replace(day=1)


@dataclass(frozen=True)
class PipelineConfig:
    """Options of a pipeline run."""

    # cases time series (wide, one column per date)
    source_a_location: str = CASES_URL
    # deaths time series (wide, with Population in the identity block)
    source_b_location: str = DEATHS_URL
    # county population density
    source_c_location: str = str(paths.DENSITY_FILE)
    snapshot_start: dt.date = dt.date(2020, 4, 1)
    snapshot_end: dt.date = dt.date(2023, 3, 1)

    output_dir: Path = paths.OUTPUT_DIR
    cache_dir: Path = paths.CACHE_DIR

    # Census GCT-PH1 exports have a second header row with descriptions
    density_skip_rows: List[int] = field(default_factory=lambda: [1])
    density_state_column: str = "GEO.display-label"
    density_county_column: str = "GCT_STUB.display-label"
    density_value_column: str = "SUBHD0401"

    def __post_init__(self):
        # normalise types, so that values coming from YAML or env are usable directly
        object.__setattr__(self, "source_a_location", str(self.source_a_location))
        object.__setattr__(self, "source_b_location", str(self.source_b_location))
        object.__setattr__(self, "source_c_location", str(self.source_c_location))
        object.__setattr__(self, "snapshot_start", to_month_start(self.snapshot_start))
        object.__setattr__(self, "snapshot_end", to_month_start(self.snapshot_end))
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "cache_dir", Path(self.cache_dir))
        object.__setattr__(self, "density_skip_rows", _to_int_list(self.density_skip_rows))

        if self.snapshot_start > self.snapshot_end:
            raise ValueError(
                f"snapshot_start ({self.snapshot_start}) must not be after snapshot_end ({self.snapshot_end})"
            )

    @classmethod
    def option_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load options from a YAML mapping, on top of the defaults."""
        with open(path) as istream:
            try:
                options = yaml.safe_load(istream) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Config file {path} is not valid YAML: {e}") from e

        if not isinstance(options, dict):
            raise ValueError(f"Config file {path} must contain a mapping of options")

        unknown = set(options) - set(cls.option_names())
        if unknown:
            raise KeyError(f"Unknown option(s) {sorted(unknown)} in config file {path}!")

        return cls(**options)

    def with_env(self, environ: Optional[Dict[str, str]] = None) -> "PipelineConfig":
        """Return a copy with options overridden by `COVID_DENSITY_<OPTION>` environment variables."""
        environ = env if environ is None else environ
        overrides: Dict[str, Any] = {}
        for name in self.option_names():
            key = ENV_PREFIX + name.upper()
            if key in environ:
                overrides[name] = environ[key]
        return self.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with the given options replaced; `None` values are ignored."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(overrides) - set(self.option_names())
        if unknown:
            raise KeyError(f"Unknown option(s) {sorted(unknown)}")
        if not overrides:
            return self
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _to_int_list(value: Any) -> List[int]:
    if value is None:
        return []
    if isinstance(value, str):
        return [int(v) for v in value.split(",") if v.strip()]
    if isinstance(value, int):
        return [value]
    return [int(v) for v in value]


def load_config(config_file: Optional[Union[str, Path]] = None, **overrides: Any) -> PipelineConfig:
    """Resolve the configuration of a run: defaults, then YAML file, then environment, then `overrides`."""
    if config_file:
        conf = PipelineConfig.from_yaml(config_file)
        log.info("config.loaded", config_file=str(config_file))
    else:
        conf = PipelineConfig()

    return conf.with_env().with_overrides(**overrides)

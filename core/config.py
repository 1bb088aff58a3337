"""Runtime configuration, read once from the environment at process start."""
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_GROQ_MODEL = "qwen/qwen3-32b"
DEFAULT_AXE_SCRIPT = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"
DEFAULT_HTMLCS_SCRIPT = "https://squizlabs.github.io/HTML_CodeSniffer/build/HTMLCS.js"

NAVIGATION_ATTEMPTS = 3

# Seconds
DEFAULT_NAVIGATION_TIMEOUT = 60.0
DEFAULT_REMEDIATION_TIMEOUT = 60.0
NAVIGATION_RETRY_DELAY = 2.0
# settle delay plus the longest in-page analysis, with headroom
ANALYSIS_ALLOWANCE = 90.0


def scan_timeout_for(navigation_timeout: float) -> float:
    """Per-engine cap that leaves room for every navigation attempt and the analysis."""
    return (
        NAVIGATION_ATTEMPTS * navigation_timeout
        + (NAVIGATION_ATTEMPTS - 1) * NAVIGATION_RETRY_DELAY
        + ANALYSIS_ALLOWANCE
    )


DEFAULT_SCAN_TIMEOUT = scan_timeout_for(DEFAULT_NAVIGATION_TIMEOUT)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    groq_api_key: Optional[str] = None
    groq_api_url: str = DEFAULT_GROQ_API_URL
    groq_model: str = DEFAULT_GROQ_MODEL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    axe_script: str = DEFAULT_AXE_SCRIPT
    htmlcs_script: str = DEFAULT_HTMLCS_SCRIPT
    scan_timeout: float = DEFAULT_SCAN_TIMEOUT
    navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT
    remediation_timeout: float = DEFAULT_REMEDIATION_TIMEOUT
    include_notices: bool = False


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment, loading a .env file first if present."""
    load_dotenv(env_file)

    origins = os.getenv("ALLOWED_ORIGINS", "*")
    allowed_origins = ["*"] if origins == "*" else [o.strip() for o in origins.split(",") if o.strip()]

    try:
        port = int(os.getenv("PORT") or DEFAULT_PORT)
    except ValueError:
        logger.warning(f"Invalid PORT={os.getenv('PORT')!r}, falling back to {DEFAULT_PORT}")
        port = DEFAULT_PORT

    navigation_timeout = _env_float("NAVIGATION_TIMEOUT", DEFAULT_NAVIGATION_TIMEOUT)
    settings = Settings(
        groq_api_key=os.getenv("GROQ_API_KEY") or None,
        groq_api_url=os.getenv("GROQ_API_URL", DEFAULT_GROQ_API_URL),
        groq_model=os.getenv("GROQ_MODEL", DEFAULT_GROQ_MODEL),
        host=os.getenv("HOST", DEFAULT_HOST),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        allowed_origins=allowed_origins,
        axe_script=os.getenv("AXE_SCRIPT", DEFAULT_AXE_SCRIPT),
        htmlcs_script=os.getenv("HTMLCS_SCRIPT", DEFAULT_HTMLCS_SCRIPT),
        scan_timeout=_env_float("SCAN_TIMEOUT", scan_timeout_for(navigation_timeout)),
        navigation_timeout=navigation_timeout,
        remediation_timeout=_env_float("REMEDIATION_TIMEOUT", DEFAULT_REMEDIATION_TIMEOUT),
        include_notices=_env_bool("INCLUDE_NOTICES", False),
    )
    if not settings.groq_api_key:
        logger.debug("GROQ_API_KEY not set; remediation requests will fail until it is configured")
    return settings

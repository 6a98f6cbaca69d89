"""Configuration management for WebPilot."""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables
load_dotenv()


class AgentSettings(BaseModel):
    """Settings for the decision loop and the LLM provider."""
    llm_provider: str = "openai"
    model: Optional[str] = None
    classifier_model: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 1024
    max_iterations: int = 80
    # 0 disables the consecutive plain-text reply limit
    max_idle_replies: int = 0
    classify_tasks: bool = True


class BrowserSettings(BaseModel):
    """Settings for the browser session, perception and action execution."""
    browser_type: str = "chromium"
    headless: bool = False
    user_data_dir: Optional[str] = "./browser-data"
    viewport_width: int = 1280
    viewport_height: int = 800

    # Perception caps
    max_elements: int = 200
    max_headings: int = 30
    max_content_chars: int = 1200

    # Timeouts (milliseconds)
    navigation_timeout: int = 30000
    network_idle_timeout: int = 5000
    load_timeout: int = 8000
    retry_load_timeout: int = 10000
    visible_timeout: int = 15000
    scroll_timeout: int = 8000
    click_timeout: int = 10000
    force_click_timeout: int = 5000
    inner_link_timeout: int = 3000
    inner_link_click_timeout: int = 8000
    input_timeout: int = 5000

    # Delays (seconds)
    action_delay: float = 0.5
    click_settle_delay: float = 1.2

    scroll_delta: int = 300


class Config:
    """Main configuration class."""

    def __init__(self, settings_file: Optional[Path] = None):
        self.root_dir = Path.cwd()
        self.settings_file = settings_file or Path(
            os.getenv("WEBPILOT_CONFIG", str(self.root_dir / "config" / "settings.yaml"))
        )

        # API Keys
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY")

        # General Settings
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        file_data = self._load_settings_file()
        self.agent = AgentSettings(**self._merge_env(file_data.get("agent") or {}, {
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "model": os.getenv("LLM_MODEL"),
            "max_iterations": os.getenv("MAX_ITERATIONS"),
        }))
        self.browser = BrowserSettings(**self._merge_env(file_data.get("browser") or {}, {
            "browser_type": os.getenv("PLAYWRIGHT_BROWSER"),
            "headless": self._env_flag("HEADLESS"),
            "user_data_dir": os.getenv("BROWSER_DATA_DIR"),
        }))

    def _load_settings_file(self) -> Dict[str, Any]:
        """Load optional settings from YAML."""
        if not self.settings_file.exists():
            return {}

        with open(self.settings_file, 'r') as f:
            data = yaml.safe_load(f)

        return data if isinstance(data, dict) else {}

    @staticmethod
    def _env_flag(name: str) -> Optional[bool]:
        raw = os.getenv(name)
        if raw is None:
            return None
        return raw.lower() in ("1", "true", "yes")

    @staticmethod
    def _merge_env(values: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Environment variables win over the settings file."""
        merged = dict(values)
        merged.update({key: value for key, value in overrides.items() if value is not None})
        return merged

    def get_api_key(self, provider: str) -> Optional[str]:
        """Get the API key for an LLM provider."""
        provider = provider.lower()
        if provider == "openai":
            return self.openai_api_key
        elif provider == "anthropic":
            return self.anthropic_api_key
        return None


# Global config instance
config = Config()

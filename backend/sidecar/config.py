"""
Agent settings for sidecar

Settings are plain pydantic models; ``AgentSettings.from_env`` fills them
from environment variables (and a ``.env`` file when present).
"""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Fixed runtime ceilings; components take these as constructor defaults
REQUEST_TIMEOUT_SECONDS = 30.0
STARTUP_GRACE_SECONDS = 0.5
PERMISSION_TIMEOUT_SECONDS = 300.0
RECOVERY_DELAY_SECONDS = 1.0
MAX_RECOVERY_RETRIES = 1

KNOWN_OPERATIONS = ("read", "write", "modify", "execute")


class ApiSettings(BaseModel):
    """Model endpoint configuration"""
    base_url: Optional[str] = None
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)


class PermissionSettings(BaseModel):
    """Default decisions per operation plus operations that always ask"""
    allow_read_by_default: bool = True
    allow_write_by_default: bool = False
    allow_execute_by_default: bool = False
    always_confirm: List[str] = Field(default_factory=list)

    @field_validator('always_confirm')
    @classmethod
    def normalize_operations(cls, v):
        return [op.strip().lower() for op in v if op and op.strip()]


class AdvancedSettings(BaseModel):
    """Loop budget and history window"""
    max_loop_count: int = Field(default=25, ge=1)
    context_window_size: int = Field(default=0, ge=0, description="Max history turns sent to the model, 0 = all")


class AgentSettings(BaseModel):
    api: ApiSettings = Field(default_factory=ApiSettings)
    permissions: PermissionSettings = Field(default_factory=PermissionSettings)
    advanced: AdvancedSettings = Field(default_factory=AdvancedSettings)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> 'AgentSettings':
        """Build settings from SIDECAR_* environment variables"""
        if dotenv:
            load_dotenv()

        api: dict = {}
        permissions: dict = {}
        advanced: dict = {}

        _set(api, 'base_url', 'SIDECAR_BASE_URL')
        _set(api, 'model', 'SIDECAR_MODEL')
        api_key = os.getenv('SIDECAR_API_KEY') or os.getenv('OPENAI_API_KEY')
        if api_key:
            api['api_key'] = api_key
        _set(api, 'temperature', 'SIDECAR_TEMPERATURE')
        _set(api, 'max_tokens', 'SIDECAR_MAX_TOKENS')

        _set(advanced, 'max_loop_count', 'SIDECAR_MAX_LOOP_COUNT')
        _set(advanced, 'context_window_size', 'SIDECAR_CONTEXT_WINDOW')

        _set(permissions, 'allow_read_by_default', 'SIDECAR_ALLOW_READ')
        _set(permissions, 'allow_write_by_default', 'SIDECAR_ALLOW_WRITE')
        _set(permissions, 'allow_execute_by_default', 'SIDECAR_ALLOW_EXECUTE')
        always_confirm = os.getenv('SIDECAR_ALWAYS_CONFIRM')
        if always_confirm:
            permissions['always_confirm'] = always_confirm.split(',')

        settings = cls(
            api=ApiSettings(**api),
            permissions=PermissionSettings(**permissions),
            advanced=AdvancedSettings(**advanced),
        )
        logger.debug(
            f"Loaded settings: model={settings.api.model}, "
            f"max_loop_count={settings.advanced.max_loop_count}, "
            f"api_key={'set' if settings.api.api_key else 'missing'}"
        )
        return settings


def _set(target: dict, key: str, env_name: str) -> None:
    value = os.getenv(env_name)
    if value is not None and value.strip() != "":
        target[key] = value.strip()

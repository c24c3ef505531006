"""
Data model for external tool providers
"""

import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ConnectionStatus(Enum):
    """Provider session connection status"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


def _random_suffix(length: int) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choice(alphabet) for _ in range(length))


def generate_provider_id() -> str:
    """Opaque provider id: provider-<millis>-<random>"""
    return f"provider-{int(time.time() * 1000)}-{_random_suffix(7)}"


@dataclass
class ProviderDefinition:
    """Configuration for a tool provider subprocess"""
    id: str
    name: str
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    description: Optional[str] = None
    enabled: bool = True
    auto_connect: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'command': self.command,
            'args': list(self.args),
            'env': dict(self.env),
            'enabled': self.enabled,
            'autoConnect': self.auto_connect,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderDefinition':
        return cls(
            id=data.get('id') or generate_provider_id(),
            name=data['name'],
            description=data.get('description'),
            command=data['command'],
            args=list(data.get('args') or []),
            env=dict(data.get('env') or {}),
            enabled=bool(data.get('enabled', True)),
            auto_connect=bool(data.get('autoConnect', data.get('auto_connect', False))),
        )


@dataclass
class ProviderToolDefinition:
    """Tool advertised by a provider in its tools/list result"""
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object"})

    def parameter_names(self) -> List[str]:
        return list((self.input_schema.get('properties') or {}).keys())

    def required(self) -> List[str]:
        return list(self.input_schema.get('required') or [])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'inputSchema': self.input_schema,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderToolDefinition':
        schema = data.get('inputSchema') or {}
        if not isinstance(schema, dict):
            schema = {}
        schema.setdefault('type', 'object')
        return cls(
            name=data['name'],
            description=data.get('description'),
            input_schema=schema,
        )


@dataclass
class ProviderSessionState:
    """Snapshot of one provider session, published on every transition"""
    id: str
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    tools: List[ProviderToolDefinition] = field(default_factory=list)
    error: Optional[str] = None
    last_connected: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status.value,
            'tools': [tool.to_dict() for tool in self.tools],
            'error': self.error,
            'lastConnected': self.last_connected,
        }


@dataclass
class CatalogTemplate:
    """Installable provider template"""
    id: str
    name: str
    description: str
    author: str
    command: str
    category: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    repository: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    featured: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'author': self.author,
            'repository': self.repository,
            'command': self.command,
            'args': list(self.args),
            'env': dict(self.env),
            'category': self.category,
            'tags': list(self.tags),
            'featured': self.featured,
        }

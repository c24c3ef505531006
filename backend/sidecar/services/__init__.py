"""
Host-facing services
"""

from .agent_service import AgentService, get_agent_service, shutdown_agent_service

__all__ = [
    "AgentService",
    "get_agent_service",
    "shutdown_agent_service",
]

"""
Workflow Configuration Package.

Centralized settings for the workflow engine and its tool layer.
"""

from config.manager import EnvironmentManager, env_manager

# Re-export the singleton instance for easy access
env = env_manager

__all__ = [
    "EnvironmentManager",
    "env_manager",
    "env",
]

"""
System components for eurocluster.
"""

from eurocluster.components.config import Config, ConfigManager

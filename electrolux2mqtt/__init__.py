"""MQTT bridge for Electrolux appliances with Home Assistant discovery."""

__version__ = "0.1.0"

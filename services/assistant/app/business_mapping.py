"""Business semantic lookup: status/severity/mode keys to visual tokens.

Default table for the lookup collaborator. The composition generator only
uses the result to pick a display variant.
"""

from typing import Dict

DEFAULT_TOKEN = "primary"

# key -> business semantic
KEY_TO_SEMANTIC: Dict[str, str] = {
    # temperature statuses
    "normal": "temperature_normal",
    "optimal": "temperature_normal",
    "warning": "temperature_warning",
    "critical": "temperature_critical",
    # equipment statuses
    "online": "equipment_online",
    "offline": "equipment_offline",
    "maintenance": "equipment_maintenance",
    "error": "equipment_offline",
    # alert severities
    "info": "equipment_online",
    "minor": "temperature_warning",
    "major": "temperature_critical",
    # operating modes
    "on": "equipment_online",
    "auto": "equipment_online",
    "cooling": "equipment_online",
    "heating": "equipment_online",
    "eco": "equipment_online",
    "fan_only": "equipment_online",
    "off": "equipment_offline",
    "standby": "equipment_maintenance",
    # intents
    "control_equipment": "confirm_action",
    "set_threshold": "confirm_action",
    "acknowledge": "confirm_action",
}

# business semantic -> design token
SEMANTIC_TO_TOKEN: Dict[str, str] = {
    "temperature_normal": "success",
    "temperature_warning": "warning",
    "temperature_critical": "danger",
    "equipment_online": "success",
    "equipment_offline": "muted",
    "equipment_maintenance": "warning",
    "confirm_action": "primary",
}


def lookup_business_semantic(key: str) -> str:
    """Resolve a status/severity/mode/intent key to a visual token"""
    semantic = KEY_TO_SEMANTIC.get(key.lower())
    if semantic is None:
        return DEFAULT_TOKEN
    return SEMANTIC_TO_TOKEN.get(semantic, DEFAULT_TOKEN)

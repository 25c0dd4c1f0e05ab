"""
Key/value system settings backed by the system_settings table.
"""
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kpi_backend.core.config import settings
from kpi_backend.core.exceptions import PersistenceError
from kpi_backend.models.system_setting import SystemSetting
from kpi_backend.services.deadline import DeadlineDays, TimeThreshold

logger = logging.getLogger(__name__)

KEY_ALLOW_REGISTRATION = "allow_registration"
KEY_STANDARD_DAYS = "deadline_standard_days"
KEY_COMPRESSED_DAYS = "deadline_compressed_days"
KEY_MINIMUM_DAYS = "deadline_minimum_days"
KEY_TIME_THRESHOLD = "deadline_time_threshold"
KEY_AUTO_PROCESS_OVERDUE = "auto_process_overdue"


def get_setting(db: Session, key: str) -> Optional[str]:
    setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return setting.value if setting else None


def set_setting(db: Session, key: str, value: str, setting_type: str = "", commit: bool = True) -> SystemSetting:
    setting = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    if setting is None:
        setting = SystemSetting(key=key, value=value, type=setting_type or "string")
        db.add(setting)
    else:
        setting.value = value
        if setting_type:
            setting.type = setting_type

    if commit:
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to save setting '{key}'") from e
    return setting


def _json_setting(db: Session, key: str, default: Dict[str, Any]) -> Dict[str, Any]:
    raw = get_setting(db, key)
    if not raw:
        return dict(default)
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Setting '{key}' holds invalid JSON, using defaults")
        return dict(default)


def get_system_settings(db: Session) -> Dict[str, Any]:
    value = get_setting(db, KEY_ALLOW_REGISTRATION)
    # Registration is open until someone turns it off
    return {"allow_registration": value is None or value == "true"}


def update_system_settings(db: Session, allow_registration: bool) -> Dict[str, Any]:
    set_setting(db, KEY_ALLOW_REGISTRATION, "true" if allow_registration else "false", "boolean")
    return {"allow_registration": allow_registration}


def get_deadline_rules(db: Session) -> Dict[str, Any]:
    defaults = settings.deadlines
    auto_process = get_setting(db, KEY_AUTO_PROCESS_OVERDUE)
    return {
        "standard_days": _json_setting(db, KEY_STANDARD_DAYS, defaults.standard_days),
        "compressed_days": _json_setting(db, KEY_COMPRESSED_DAYS, defaults.compressed_days),
        "minimum_days": _json_setting(db, KEY_MINIMUM_DAYS, defaults.minimum_days),
        "time_threshold": _json_setting(db, KEY_TIME_THRESHOLD, defaults.time_threshold),
        "auto_process_overdue": defaults.auto_process_overdue if auto_process is None else auto_process == "true",
    }


def update_deadline_rules(db: Session, rules: Dict[str, Any]) -> Dict[str, Any]:
    """Persist all deadline rules in a single commit."""
    set_setting(db, KEY_STANDARD_DAYS, json.dumps(rules["standard_days"]), "json", commit=False)
    set_setting(db, KEY_COMPRESSED_DAYS, json.dumps(rules["compressed_days"]), "json", commit=False)
    set_setting(db, KEY_MINIMUM_DAYS, json.dumps(rules["minimum_days"]), "json", commit=False)
    set_setting(db, KEY_TIME_THRESHOLD, json.dumps(rules["time_threshold"]), "json", commit=False)
    set_setting(
        db, KEY_AUTO_PROCESS_OVERDUE,
        "true" if rules.get("auto_process_overdue") else "false", "boolean", commit=False
    )
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError("Failed to update deadline rules") from e
    return get_deadline_rules(db)


def deadline_parameters(db: Session) -> Dict[str, Any]:
    """Deadline rules converted into the calculator's value types."""
    rules = get_deadline_rules(db)
    return {
        "standard_days": DeadlineDays.from_dict(rules["standard_days"]),
        "compressed_days": DeadlineDays.from_dict(rules["compressed_days"]),
        "minimum_days": DeadlineDays.from_dict(rules["minimum_days"]),
        "threshold": TimeThreshold.from_dict(rules["time_threshold"]),
    }

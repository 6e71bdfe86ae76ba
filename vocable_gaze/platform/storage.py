"""
Persistent Storage
Storage interface consumed by the tracker, and a SQLAlchemy key/value
implementation (SQLite by default)
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy import Column, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..calibration.persistence import CorruptCalibrationRecord, decode_calibration, encode_calibration, record_keys
from ..models import CalibrationData

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = 'sqlite:///vocable_gaze.db'

Base = declarative_base()


class KeyValue(Base):
    """One stored text value"""
    __tablename__ = 'key_value'

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)

    def __repr__(self):
        return f"<KeyValue(key={self.key!r})>"


class Storage(ABC):
    """Key/value persistence for calibration records and settings"""

    @abstractmethod
    def save_calibration_data(self, data: CalibrationData, mode_key: str) -> bool:
        ...

    @abstractmethod
    def load_calibration_data(self, mode_key: str) -> Optional[CalibrationData]:
        ...

    @abstractmethod
    def delete_calibration_data(self, mode_key: str) -> bool:
        ...

    @abstractmethod
    def save_string(self, key: str, value: str) -> bool:
        ...

    @abstractmethod
    def load_string(self, key: str, default_value: str) -> str:
        ...

    def save_float(self, key: str, value: float) -> bool:
        return self.save_string(key, repr(float(value)))

    def load_float(self, key: str, default_value: float) -> float:
        text = self.load_string(key, None)
        if text is None:
            return default_value
        try:
            return float(text)
        except ValueError:
            logger.warning(f"Stored value for '{key}' is not a float: {text!r}")
            return default_value

    def save_bool(self, key: str, value: bool) -> bool:
        return self.save_string(key, 'true' if value else 'false')

    def load_bool(self, key: str, default_value: bool) -> bool:
        text = self.load_string(key, None)
        if text is None:
            return default_value
        if text in ('true', 'false'):
            return text == 'true'
        logger.warning(f"Stored value for '{key}' is not a bool: {text!r}")
        return default_value

    def save_int(self, key: str, value: int) -> bool:
        return self.save_string(key, str(int(value)))

    def load_int(self, key: str, default_value: int) -> int:
        text = self.load_string(key, None)
        if text is None:
            return default_value
        try:
            return int(text)
        except ValueError:
            logger.warning(f"Stored value for '{key}' is not an int: {text!r}")
            return default_value


class SqlStorage(Storage):
    """
    SQLAlchemy-backed storage

    Every value is a text row in the key_value table. Database errors are
    rolled back, logged and reported as False / None.

    Usage:
        storage = SqlStorage('sqlite:///vocable_gaze.db')
        storage.save_calibration_data(data, 'AFFINE')
        data = storage.load_calibration_data('AFFINE')
        storage.close()
    """

    def __init__(self, url: str = DEFAULT_DB_URL):
        engine_kwargs = {}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection so the in-memory database survives across sessions
            engine_kwargs = {
                'connect_args': {'check_same_thread': False},
                'poolclass': StaticPool,
            }
        try:
            self.engine = create_engine(url, **engine_kwargs)
            Base.metadata.create_all(self.engine)
            self.session = sessionmaker(bind=self.engine)()
            logger.info(f"✓ Storage connected ({self.engine.url.get_backend_name()})")
        except SQLAlchemyError as e:
            logger.error(f"✗ Failed to open storage: {e}")
            raise
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def save_calibration_data(self, data: CalibrationData, mode_key: str) -> bool:
        """
        Store a calibration record, replacing any previous one for the mode

        Returns:
            True if committed
        """
        if not self.put_many(encode_calibration(data, mode_key)):
            logger.error(f"✗ Failed to save calibration data for mode: {mode_key}")
            return False
        logger.info(f"✓ Saved calibration data for mode: {mode_key}")
        return True

    def load_calibration_data(self, mode_key: str) -> Optional[CalibrationData]:
        """
        Load a calibration record

        Returns:
            CalibrationData, or None if absent or corrupt
        """
        keys = list(record_keys(mode_key).values())
        with self._lock:
            try:
                rows = self.session.query(KeyValue).filter(KeyValue.key.in_(keys)).all()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Failed to load calibration data: {e}", exc_info=True)
                return None

        values: Dict[str, str] = {row.key: row.value for row in rows}
        if not values:
            logger.debug(f"No calibration stored for mode: {mode_key}")
            return None

        try:
            data = decode_calibration(values, mode_key)
        except CorruptCalibrationRecord as e:
            logger.warning(f"Discarding corrupt calibration for mode {mode_key}: {e}")
            return None

        logger.info(f"Loaded calibration data for mode: {mode_key}")
        return data

    def delete_calibration_data(self, mode_key: str) -> bool:
        keys = list(record_keys(mode_key).values())
        with self._lock:
            try:
                self.session.query(KeyValue).filter(KeyValue.key.in_(keys)).delete(synchronize_session='fetch')
                self.session.commit()
                logger.info(f"Deleted calibration data for mode: {mode_key}")
                return True
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Failed to delete calibration data: {e}", exc_info=True)
                return False

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def save_string(self, key: str, value: str) -> bool:
        return self.put_many({key: value})

    def load_string(self, key: str, default_value: Optional[str]) -> Optional[str]:
        with self._lock:
            try:
                row = self.session.query(KeyValue).filter(KeyValue.key == key).first()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Failed to load '{key}': {e}")
                return default_value
        return row.value if row is not None else default_value

    def put_many(self, values: Dict[str, str]) -> bool:
        """Write several text rows in one transaction"""
        with self._lock:
            try:
                for key, value in values.items():
                    self.session.merge(KeyValue(key=key, value=value))
                self.session.commit()
                return True
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Failed to write {len(values)} rows: {e}")
                return False

    def close(self):
        with self._lock:
            self.session.close()
            self.engine.dispose()
        logger.info("Storage closed")

    def __repr__(self):
        return f"<SqlStorage(url={self.engine.url!r})>"

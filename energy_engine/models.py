# energy_engine/models.py
from sqlalchemy import Column, Integer, Float, DateTime, String, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()

def _utcnow():
    return datetime.now(timezone.utc)

# ---------- History (append-only, never updated or deleted) ----------

class MeterHistory(Base):
    __tablename__ = "meter_readings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    meter_id = Column(String(100), nullable=False)
    kwh_consumed_ac = Column(Float, nullable=False)   # AC energy consumed (kWh)
    voltage = Column(Float, nullable=False)           # V
    ts = Column(DateTime(timezone=True), nullable=False)  # event time (UTC)
    created_at = Column(DateTime(timezone=True), default=_utcnow)  # arrival time

    __table_args__ = (
        Index("ix_meter_readings_meter_id_ts", "meter_id", "ts"),
        Index("ix_meter_readings_ts", "ts"),
    )

class VehicleHistory(Base):
    __tablename__ = "vehicle_readings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(String(100), nullable=False)
    soc = Column(Float, nullable=False)               # state of charge (%)
    kwh_delivered_dc = Column(Float, nullable=False)  # DC energy delivered to battery (kWh)
    battery_temp = Column(Float, nullable=False)      # °C
    ts = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_vehicle_readings_vehicle_id_ts", "vehicle_id", "ts"),
        Index("ix_vehicle_readings_ts", "ts"),
    )

# ---------- Current state (one row per device, newest event time wins) ----------

class MeterCurrent(Base):
    __tablename__ = "meter_current"
    meter_id = Column(String(100), primary_key=True)
    kwh_consumed_ac = Column(Float, nullable=False)
    voltage = Column(Float, nullable=False)
    ts = Column(DateTime(timezone=True), nullable=False)

class VehicleCurrent(Base):
    __tablename__ = "vehicle_current"
    vehicle_id = Column(String(100), primary_key=True)
    soc = Column(Float, nullable=False)
    kwh_delivered_dc = Column(Float, nullable=False)
    battery_temp = Column(Float, nullable=False)
    ts = Column(DateTime(timezone=True), nullable=False)

# ---------- Mapping ----------

class VehicleMeterMap(Base):
    __tablename__ = "vehicle_meter_map"
    vehicle_id = Column(String(100), primary_key=True)
    meter_id = Column(String(100), nullable=False, index=True)

# EV Charging Booking — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.charging_station import ChargingStation          # noqa
from app.models.charging_port import ChargingPort                # noqa
from app.models.charging_slot import ChargingSlot                # noqa
from app.models.vehicle import Vehicle                           # noqa
from app.models.reservation import Reservation, ReservationItem  # noqa
from app.models.charging_session import ChargingSession          # noqa

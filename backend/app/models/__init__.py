# Import all models so SQLAlchemy registers them on Base.metadata
from app.models.satellite_record import SatelliteRecord as SatelliteRecord
from app.models.user import User as User

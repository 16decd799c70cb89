# Import Base class and all models so create_all can detect them
from app.db.base_class import Base  # noqa
from app.models.satellite_record import SatelliteRecord  # noqa
from app.models.user import User  # noqa

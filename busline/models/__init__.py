# Import every model so Base.metadata knows all tables (create_all, tests).
from busline.models.base import Base  # noqa: F401
from busline.models import company, branch, location, route, fleet, people  # noqa: F401
from busline.models import schedule, ticket, parcel  # noqa: F401

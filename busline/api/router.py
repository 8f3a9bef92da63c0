from fastapi import APIRouter

from busline.api.routes import (
    health, companies, locations, routes, seat_tiers, bus_templates, buses, bus_seats,
    drivers, customers, profiles, schedules, tickets, parcels,
)

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])  # GET /
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])  # CRUD, deactivate, branches
api_router.include_router(companies.branches_router, prefix="/branches", tags=["companies"])  # PATCH /{id}
api_router.include_router(locations.router, prefix="/locations", tags=["locations"])
api_router.include_router(routes.router, prefix="/routes", tags=["routes"])
api_router.include_router(routes.route_schedules_router, prefix="/route-schedules", tags=["routes"])
api_router.include_router(seat_tiers.router, prefix="/seat-tiers", tags=["fleet"])
api_router.include_router(bus_templates.router, prefix="/bus-templates", tags=["fleet"])
api_router.include_router(buses.router, prefix="/buses", tags=["fleet"])  # CRUD, maintenance, seats
api_router.include_router(bus_seats.router, prefix="/bus-seats", tags=["fleet"])
api_router.include_router(drivers.router, prefix="/drivers", tags=["people"])
api_router.include_router(customers.router, prefix="/customers", tags=["people"])
api_router.include_router(profiles.router, prefix="/profiles", tags=["people"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])  # availability, tickets, parcels, status
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])  # bulk, cancel, reassign, use
api_router.include_router(parcels.router, prefix="/parcels", tags=["parcels"])

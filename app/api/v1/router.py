"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from app.api.v1 import (
    admin,
    assignments,
    auth,
    bookings,
    notifications,
    payments,
    reviews,
    services,
    users,
    webhooks,
)

api_router = APIRouter()

# Authentication
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Users
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Service catalog
api_router.include_router(services.router, prefix="/services", tags=["Services"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])

# Reviews
api_router.include_router(reviews.router, prefix="/reviews", tags=["Reviews"])

# Driver / guide assignments
api_router.include_router(assignments.router, prefix="/assignments", tags=["Assignments"])

# Notifications
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

from fastapi import APIRouter

from orderdesk.api.v1.endpoints import (
    manufacturers,
    products,
    option_mappings,
    exclusion,
    couriers,
    invoices,
    orders,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Manufacturer Resolution ====================
api_router.include_router(
    manufacturers.router,
    prefix="/manufacturers",
    tags=["Manufacturers"]
)
api_router.include_router(
    products.router,
    tags=["Resolution"]
)
api_router.include_router(
    option_mappings.router,
    prefix="/option-mappings",
    tags=["Option Mappings"]
)

# ==================== Exclusion ====================
api_router.include_router(
    exclusion.router,
    prefix="/exclusion",
    tags=["Exclusion"]
)

# ==================== Invoice Reconciliation ====================
api_router.include_router(
    couriers.router,
    prefix="/couriers",
    tags=["Couriers"]
)
api_router.include_router(
    invoices.router,
    prefix="/invoices",
    tags=["Invoices"]
)

# ==================== Orders ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)

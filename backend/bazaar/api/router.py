from fastapi import APIRouter

from .admin import mfa as admin_mfa
from .admin import orders as admin_orders
from .admin import staff as admin_staff

router = APIRouter(prefix="/v1")

_admin_routers = [
    admin_staff.router,
    admin_mfa.router,
    admin_orders.router,
]

for _router in _admin_routers:
    router.include_router(_router)

from fastapi import APIRouter
from milkcart.api.__init__ import version_prefix
from milkcart.auth.constants import ADMIN_ROLE
from milkcart.auth.dependencies import require_roles
from milkcart.admin.routes import dashboard_admin_router
from milkcart.cart.routes import carts_router
from milkcart.common.routes import home_router
from milkcart.delivery.routes import assignments_admin_router, delivery_admin_router, delivery_person_router, slots_router
from milkcart.orders.routes import orders_admin_router, orders_router
from milkcart.payments.routes import payments_admin_router, payments_router
from milkcart.products.routes import prods_admin_router, prods_public_router
from milkcart.refunds.routes import refunds_admin_router, refunds_router
from milkcart.subscriptions.routes import plans_public_router, subscriptions_admin_router, subscriptions_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(prods_public_router, prefix="/products",tags=["products-public"])
public_routers.include_router(carts_router,prefix="/cart",tags=["cart"])
public_routers.include_router(slots_router,prefix="/delivery",tags=["delivery-slots"])
public_routers.include_router(delivery_person_router,prefix="/delivery",tags=["delivery"])
public_routers.include_router(orders_router,prefix="/orders",tags=["orders"])
public_routers.include_router(payments_router,prefix="/payments",tags=["payments"])
public_routers.include_router(plans_public_router,prefix="/subscription-plans",tags=["subscription-plans"])
public_routers.include_router(subscriptions_router,prefix="/subscriptions",tags=["subscriptions"])
public_routers.include_router(refunds_router,prefix="/refunds",tags=["refunds"])
public_routers.include_router(home_router,tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin", dependencies=[require_roles(ADMIN_ROLE)])

admin_routers.include_router(dashboard_admin_router,tags=["dashboard-admin"])
admin_routers.include_router(prods_admin_router, prefix="/products",tags=["products-admin"])
admin_routers.include_router(orders_admin_router, prefix="/orders",tags=["orders-admin"])
admin_routers.include_router(payments_admin_router, prefix="/payments",tags=["payments-admin"])
admin_routers.include_router(subscriptions_admin_router, prefix="/subscriptions",tags=["subscriptions-admin"])
admin_routers.include_router(refunds_admin_router, prefix="/refunds",tags=["refunds-admin"])
admin_routers.include_router(delivery_admin_router, prefix="/delivery-persons",tags=["delivery-admin"])
admin_routers.include_router(assignments_admin_router, prefix="/delivery-assignments",tags=["delivery-admin"])

from fastapi import APIRouter

from catalog_migration.api import migration, price_guide

router = APIRouter()

# Price guide first so its paths win over the generic collection routes
router.include_router(
    price_guide.router, prefix="/migration/price-guide", tags=["price-guide-migration"]
)
router.include_router(migration.router, prefix="/migration", tags=["migration"])

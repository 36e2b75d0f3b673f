# Services Module: money helpers and the product catalog.
# Import submodules directly (storefront.services.money, storefront.services.catalog).

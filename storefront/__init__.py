# Storefront package

# Cache domain package

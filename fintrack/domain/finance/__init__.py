# Finance domain package

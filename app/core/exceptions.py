class StorageError(Exception):
    pass


class CatalogueStoreError(Exception):
    pass

class CatalogueError(Exception):
    pass


class TaskNotFoundError(CatalogueError):
    pass


class TaskNotRetryableError(CatalogueError):
    pass

from resumezap.storage.database import Database

__all__ = ["Database"]

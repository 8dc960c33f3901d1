from .mongo import MongoConnection

__all__ = ["MongoConnection"]

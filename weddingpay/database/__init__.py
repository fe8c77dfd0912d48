from weddingpay.database.db import db

__all__ = ["db"]

# -*- coding: utf-8 -*-
"""WSGI entry point: ``gunicorn weddingpay.main:app``."""
import os

from weddingpay.factory import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", "5000")))

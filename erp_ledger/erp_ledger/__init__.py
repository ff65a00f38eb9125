# Celery instance is defined in erp_ledger/celery.py
# It points the worker at the Django settings of this project
from .celery import celery_app

# 'from erp_ledger import *', only exports celery_app
__all__ = ("celery_app",)

""" Run workers with "celery -A erp_ledger worker -l info".
    -A erp_ledger imports erp_ledger/__init__.py,
    which exposes celery_app, so Celery knows which tasks to run. """

"""Gunicorn production configuration for the expense approval API.

Run from the repository root: gunicorn -c gunicorn.conf.py
"""
import multiprocessing
import os

chdir = "backend"
wsgi_app = "app.main:app"

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"
# Decisions hold a row lock on the expense for the length of one request;
# keep the worker count bounded by the database pool (pool_size + max_overflow).
workers = int(os.getenv("WEB_CONCURRENCY", min(multiprocessing.cpu_count() * 2 + 1, 8)))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 30
graceful_timeout = 20
keepalive = 5
max_requests = 1000
max_requests_jitter = 100
preload_app = False
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# ==================================================
# handlers/__init__.py
# ==================================================
"""
HTTP route handlers (FastAPI routers).

Each module exposes `router` and `register_handlers(app)`:

- health.py:     /api/health
- books.py:      public catalogue
- payments.py:   initialize/verify + gateway redirect callbacks
- webhooks.py:   Paystack & Flutterwave webhooks
- orders.py, coupons.py, preorders.py: storefront
- publishing.py: manuscript submissions & fee
- courses.py, events.py: academy & events
"""

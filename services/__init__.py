# ========================================================
# services/__init__.py
# ========================================================
"""
Business Logic Services.

Contains reusable service modules decoupled from handlers:

- payment_providers/: Paystack & Flutterwave clients behind PaymentService
- payments.py:   transaction ledger & idempotent settlement
- checkout.py:   order payment initialize/verify + redirect callbacks
- webhooks.py:   gateway webhook events -> settlement
- orders.py, coupons.py, preorders.py, catalog.py: storefront
- publishing.py, academy.py, events.py: submissions, courses, events
- mailer.py:     transactional emails via Resend
"""

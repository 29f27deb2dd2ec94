"""
Billing package - plan catalog, subscription ledger, invoices and payments.

This package integrates with:
- Xendit: hosted invoices and payment callbacks

Deferred changes and period expiry are applied by the billing sweep worker.
"""

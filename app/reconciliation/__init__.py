"""
Reconciliation app for Stitch and Paystack.

This app handles:
- Customer payments collected by Stitch pay-by-bank
- Merchant payouts (Stitch disbursements) of each payment's net share
- Platform subscriptions billed by Paystack, and their entitlements
- Signed webhooks and redirect callbacks from both providers

Related apps:
    - accounts: Merchants and their payout bank details

Usage:
    from reconciliation.services import ReconciliationOrchestrator

    outcome = ReconciliationOrchestrator().apply(event)
"""

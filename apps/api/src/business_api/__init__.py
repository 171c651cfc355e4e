"""Loyalty business service: stamps, coupons, CRM and analytics."""

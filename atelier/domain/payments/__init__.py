"""Payments domain - payment ledger and OCR-assisted receipts"""

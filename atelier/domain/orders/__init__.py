"""Orders domain - checkout, totals, status engine, attachments and reviews"""

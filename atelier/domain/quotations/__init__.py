"""Quotations domain - cart, pricing and customer decision"""

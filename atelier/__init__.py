"""Atelier API - made-to-order furniture workshop backend"""

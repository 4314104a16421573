"""Visits domain - booking and slot allocation"""
